"""
Error types for pagesmith

Decode and cleaning problems never surface as exceptions; they are handled where
they happen. Transport failures are raised by the backends and handled by the
page generator, which only lets ``FallbackExhausted`` reach the caller.
"""
from __future__ import annotations
from typing import Optional


class PageGenerationError(Exception):
    """Base class for failures while generating a page."""


class TransportError(PageGenerationError):
    """The backend connection failed, returned an error, or was cut mid-read."""

    def __init__(
        self,
        message: str,
        *,
        body: Optional[str] = None,
        status_code: Optional[int] = None,
        transient: bool = False
    ):
        super().__init__(message)
        self.body = body
        self.status_code = status_code
        # Timeouts and partial reads, as opposed to rejected requests
        self.transient = transient


class FallbackExhausted(PageGenerationError):
    """Streaming and non-streaming attempts both produced nothing usable."""


class PromptNotFound(LookupError):
    """No prompt file exists for the requested page."""

    def __init__(self, page: str):
        super().__init__(f"Prompt file not found: {page}")
        self.page = page
