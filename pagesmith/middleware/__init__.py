"""pagesmith middleware."""
from pagesmith.middleware.request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]
