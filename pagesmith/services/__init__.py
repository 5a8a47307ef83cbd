"""Page generation services."""
