"""pagesmith routes."""
from pagesmith.routes.pages import router

__all__ = ["router"]
