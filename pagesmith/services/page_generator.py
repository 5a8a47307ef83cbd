"""
Page Generator for pagesmith

Drives one page request end to end: pulls raw frames from the backend, decodes
them, feeds the stream sanitizer, and yields cleaned segments as soon as they
are ready. Handles the end of the stream (finalizer), empty responses, and
transport failures (fallback supervisor).

All sanitizer state is created inside ``stream_page``, so concurrent requests
never share offsets or buffers.
"""
from __future__ import annotations
import asyncio
import logging
from typing import AsyncGenerator, List, Optional

from pagesmith.config import Settings, get_settings
from pagesmith.errors import TransportError
from pagesmith.models.request import ChatRequest
from pagesmith.sanitizer import EnvelopeDecoder, Phase, StreamSanitizer, finalize
from pagesmith.services.backends import ChatBackend, create_backend
from pagesmith.services.fallback import FallbackSupervisor
from pagesmith.utils.logging import log_raw_payload
from pagesmith.utils.reasoning import is_reasoning_model

logger = logging.getLogger(__name__)


class PageGenerator:
    """Streams sanitized pages from a model backend."""

    def __init__(self, backend: ChatBackend, settings: Optional[Settings] = None):
        self.backend = backend
        self.settings = settings or get_settings()
        self.decoder = EnvelopeDecoder()
        self.fallback = FallbackSupervisor(backend)

    def build_request(self, system_prompt: str, user_prompt: str) -> ChatRequest:
        """Build a backend request, suppressing reasoning output where the model has it."""
        model = self.settings.ai_model
        return ChatRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            model=model,
            suppress_reasoning=is_reasoning_model(model, self.settings.reasoning_models),
        )

    async def stream_page(self, request: ChatRequest) -> AsyncGenerator[str, None]:
        """Yield cleaned page segments.

        Raises ``FallbackExhausted`` (before anything was yielded) when neither
        the streaming nor the non-streaming attempt produced content. Closing
        the generator, e.g. because the client went away, stops reading from
        the backend and releases the connection.
        """
        sanitizer = StreamSanitizer()
        session = sanitizer.session
        raw_frames: List[str] = []  # tee of the transport for diagnostics
        decoded: List[str] = []
        transport_error: Optional[TransportError] = None

        frames = self.backend.stream_frames(request)
        try:
            async for frame in frames:
                raw_frames.append(frame)
                result = self.decoder.decode(frame)
                if result.error:
                    raise TransportError(f"Provider error: {result.error}", body=frame)
                if result.done:
                    break
                if not result.text:
                    continue

                decoded.append(result.text)
                segment = sanitizer.feed(result.text)
                if segment:
                    try:
                        yield segment
                    except (GeneratorExit, asyncio.CancelledError):
                        logger.info("Client disconnected after %d characters; aborting stream",
                                    session.emitted_chars)
                        raise
                if session.phase is Phase.COMPLETE:
                    break
        except TransportError as e:
            transport_error = e
            logger.warning("Transport error after %d frames: %s", len(raw_frames), e)
        finally:
            await frames.aclose()

        if transport_error is not None and session.emitted_chars == 0:
            yield await self.fallback.recover(request, transport_error, partial="".join(decoded))
            return

        tail = finalize(session)
        if tail:
            yield tail

        if session.held_back:
            logger.warning("Cleaned output diverged from text already sent; %d updates were held back",
                           session.held_back)
        if transport_error is not None:
            logger.warning("Stream failed mid-document; sent %d characters of partial content",
                           session.emitted_chars)
        elif session.emitted_chars == 0:
            logger.warning("Backend returned no content (%d frames, %d decoded characters)",
                           len(raw_frames), session.received_chars)
            log_raw_payload(logger, "Raw transport payload", "\n".join(raw_frames))
        else:
            logger.info(
                "Page complete: %d characters sent from %d frames%s",
                session.emitted_chars, session.frames,
                f", {session.discarded_chars} trailing characters dropped" if session.truncated else ""
            )

    async def aclose(self):
        await self.backend.aclose()


# =============================================================================
# Module-level Functions
# =============================================================================

_page_generator: Optional[PageGenerator] = None


def get_page_generator() -> PageGenerator:
    """Get or create the page generator for the configured backend."""
    global _page_generator
    if _page_generator is None:
        settings = get_settings()
        _page_generator = PageGenerator(create_backend(settings), settings)
    return _page_generator


async def close_page_generator():
    """Close the backend connections, if a generator was ever created."""
    global _page_generator
    if _page_generator is not None:
        await _page_generator.aclose()
        _page_generator = None
