"""
Logging setup for pagesmith

Every record carries the id of the request that produced it, so interleaved
logs of concurrent page streams can be told apart.
"""
from __future__ import annotations
import logging
from contextvars import ContextVar

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

# Set per request by RequestContextMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Long payloads are logged in pieces so log collectors don't cut them
_PAYLOAD_CHUNK = 1000


class RequestIdFilter(logging.Filter):
    """Attach the current request id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def configure_logging(level: str = "INFO", debug: bool = False) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel("DEBUG" if debug else level.upper())

    # httpx logs every request at INFO; keep it quiet unless debugging
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def log_raw_payload(logger: logging.Logger, label: str, payload: str, level: int = logging.WARNING) -> None:
    """Log a raw transport payload for postmortem diagnosis."""
    if not payload:
        logger.log(level, "%s: <empty>", label)
        return
    for start in range(0, len(payload), _PAYLOAD_CHUNK):
        logger.log(level, "%s [%d]: %s", label, start, payload[start:start + _PAYLOAD_CHUNK])
