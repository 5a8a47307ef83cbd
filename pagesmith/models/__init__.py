"""pagesmith models."""
from pagesmith.models.request import ChatRequest
from pagesmith.models.response import ErrorResponse, HealthResponse

__all__ = ["ChatRequest", "ErrorResponse", "HealthResponse"]
