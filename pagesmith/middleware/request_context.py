"""
Request Context Middleware for pagesmith

Gives every request an id, exposed on ``request.state``, in the
``X-Request-ID`` response header, and on every log record written while the
request is handled.
"""
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from pagesmith.utils.logging import request_id_var


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware that attaches a request id to each request."""

    async def dispatch(self, request: Request, call_next):
        # Reuse an id assigned by a proxy in front of us
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response
