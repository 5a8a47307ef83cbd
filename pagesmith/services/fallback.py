"""
Fallback Supervisor for pagesmith

Runs only when a streaming attempt failed at the transport level before any
content reached the client. Re-issues the request without streaming; if that
fails too, partial content from the failed stream beats an empty page when
the failure looks like a timeout or a cut-off read.
"""
from __future__ import annotations
import logging

from pagesmith.errors import FallbackExhausted, TransportError
from pagesmith.models.request import ChatRequest
from pagesmith.sanitizer import decode_body, remove_reasoning, sanitize_document
from pagesmith.services.backends import ChatBackend
from pagesmith.utils.logging import log_raw_payload

logger = logging.getLogger(__name__)


class FallbackSupervisor:
    """Recovers a page after the streaming attempt produced nothing."""

    def __init__(self, backend: ChatBackend):
        self.backend = backend

    async def recover(self, request: ChatRequest, error: TransportError, partial: str = "") -> str:
        """Return cleaned page content, or raise ``FallbackExhausted``.

        Args:
            request: The request that failed while streaming
            error: The transport error that ended the stream
            partial: Text decoded from the stream before it failed
        """
        logger.warning("Streaming failed with no content sent (%s); retrying without streaming", error)
        if error.body:
            log_raw_payload(logger, "Raw streaming error body", error.body)

        try:
            body = await self.backend.complete(request)
        except TransportError as retry_error:
            logger.error("Non-streaming retry failed: %s", retry_error)
            if retry_error.body:
                log_raw_payload(logger, "Raw non-streaming error body", retry_error.body)
            failure = retry_error
        else:
            log_raw_payload(logger, "Raw non-streaming response", body, level=logging.DEBUG)
            content = sanitize_document(remove_reasoning(decode_body(body)))
            if content:
                logger.info("Non-streaming retry succeeded: %d characters", len(content))
                return content
            log_raw_payload(logger, "Non-streaming response without content", body)
            failure = TransportError("Non-streaming retry returned no content", body=body)

        if failure.transient or error.transient:
            content = sanitize_document(partial)
            if content:
                logger.warning("Using %d characters of partial content after timeout/partial read", len(content))
                return content
            raise FallbackExhausted("Backend timed out with no partial content available") from failure

        raise FallbackExhausted("Both streaming and non-streaming requests failed") from failure
