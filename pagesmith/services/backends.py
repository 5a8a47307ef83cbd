"""
Model backends for pagesmith

Each backend owns the HTTP connection to a model server. ``stream_frames``
yields raw transport frames (one line each) for the envelope decoder, and
``complete`` performs the same request without streaming and returns the raw
response body. Both raise ``TransportError`` on any connection, status or read
failure.

The streaming path talks HTTP directly instead of going through an SDK so that
non-standard envelopes reach the decoder untouched.
"""
from __future__ import annotations
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx
import openai
from openai import AsyncOpenAI

from pagesmith.config import Settings
from pagesmith.errors import TransportError
from pagesmith.models.request import ChatRequest

logger = logging.getLogger(__name__)

# Exceptions that mean the body was cut off mid-read
PARTIAL_READ_ERRORS = (httpx.RemoteProtocolError, httpx.ReadError)


def build_timeout(settings: Settings, read_seconds: Optional[float] = None) -> httpx.Timeout:
    """Separate timeouts for connecting and for reading/writing the body."""
    return httpx.Timeout(
        connect=settings.connect_timeout_seconds,
        read=read_seconds or settings.read_timeout_seconds,
        write=settings.write_timeout_seconds,
        pool=settings.connect_timeout_seconds,
    )


def _redact(headers: httpx.Headers) -> Dict[str, str]:
    return {
        key: ("Bearer ***" if key.lower() == "authorization" else value)
        for key, value in headers.items()
    }


async def _log_request(request: httpx.Request):
    logger.debug("HTTP %s %s headers=%s", request.method, request.url, _redact(request.headers))
    if request.content:
        logger.debug("HTTP request body: %s", request.content.decode("utf-8", "replace"))


async def _log_response(response: httpx.Response):
    logger.debug(
        "HTTP %s %s -> %s headers=%s",
        response.request.method, response.request.url, response.status_code, dict(response.headers)
    )


def debug_event_hooks(debug: bool) -> Dict[str, list]:
    """httpx event hooks that log every request/response when debugging."""
    if not debug:
        return {}
    return {"request": [_log_request], "response": [_log_response]}


def _transport_error(exc: httpx.HTTPError, backend: str) -> TransportError:
    transient = isinstance(exc, (httpx.TimeoutException,) + PARTIAL_READ_ERRORS)
    return TransportError(f"{backend} request failed: {exc!r}", transient=transient)


# =============================================================================
# Backend Base Class
# =============================================================================

class ChatBackend:
    """Base class for model backends."""

    name = "backend"
    stream_path = ""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.api_base = settings.api_base
        self.api_key = settings.api_key
        self.http = httpx.AsyncClient(
            timeout=build_timeout(settings),
            event_hooks=debug_event_hooks(settings.debug),
        )

    @property
    def stream_url(self) -> str:
        return self.api_base + self.stream_path

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, request: ChatRequest, stream: bool) -> Dict[str, Any]:
        raise NotImplementedError

    async def stream_frames(self, request: ChatRequest) -> AsyncIterator[str]:
        """Yield raw response lines of a streaming request."""
        payload = self.build_payload(request, stream=True)
        try:
            async with self.http.stream(
                "POST", self.stream_url, json=payload, headers=self.headers()
            ) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", "replace")
                    raise TransportError(
                        f"{self.name} returned HTTP {response.status_code}",
                        body=body,
                        status_code=response.status_code,
                    )
                logger.debug("Streaming from %s (content-type %s)",
                             self.stream_url, response.headers.get("content-type"))
                async for line in response.aiter_lines():
                    yield line
        except httpx.HTTPError as e:
            raise _transport_error(e, self.name) from e

    async def complete(self, request: ChatRequest) -> str:
        """Send the request without streaming and return the raw body."""
        raise NotImplementedError

    async def aclose(self):
        await self.http.aclose()


# =============================================================================
# OpenAI-compatible Backend
# =============================================================================

class OpenAIBackend(ChatBackend):
    """Any OpenAI-compatible chat completions API (OpenAI, Gemini, Cerebras, LM Studio...)."""

    name = "openai"
    stream_path = "/chat/completions"

    def __init__(self, settings: Settings):
        super().__init__(settings)
        if not self.api_key:
            raise ValueError("AI_API_KEY (or OPENAI_API_KEY) is required for the openai backend")
        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.api_base,
            timeout=build_timeout(settings, settings.fallback_timeout_seconds),
            max_retries=0,
        )

    def headers(self) -> Dict[str, str]:
        headers = super().headers()
        headers["Accept"] = "text/event-stream"
        return headers

    def build_payload(self, request: ChatRequest, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": request.messages(),
            "stream": stream,
        }
        if request.suppress_reasoning:
            payload["thinking"] = False
        return payload

    async def complete(self, request: ChatRequest) -> str:
        extra_body = {"thinking": False} if request.suppress_reasoning else None
        try:
            raw = await self.client.chat.completions.with_raw_response.create(
                model=request.model,
                messages=request.messages(),
                stream=False,
                extra_body=extra_body,
            )
        except openai.APITimeoutError as e:
            raise TransportError(f"openai request timed out: {e}", transient=True) from e
        except openai.APIStatusError as e:
            raise TransportError(
                f"openai returned HTTP {e.status_code}",
                body=e.response.text,
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            transient = isinstance(e.__cause__, PARTIAL_READ_ERRORS)
            raise TransportError(f"openai connection failed: {e}", transient=transient) from e
        return raw.http_response.text

    async def aclose(self):
        await super().aclose()
        await self.client.close()


# =============================================================================
# Ollama Backend
# =============================================================================

class OllamaBackend(ChatBackend):
    """Ollama ``/api/chat``: newline-delimited JSON frames."""

    name = "ollama"
    stream_path = "/api/chat"

    def build_payload(self, request: ChatRequest, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": request.messages(),
            "stream": stream,
        }
        if request.suppress_reasoning:
            payload["think"] = False
        return payload

    async def complete(self, request: ChatRequest) -> str:
        payload = self.build_payload(request, stream=False)
        try:
            response = await self.http.post(
                self.stream_url,
                json=payload,
                headers=self.headers(),
                timeout=build_timeout(self.settings, self.settings.fallback_timeout_seconds),
            )
        except httpx.HTTPError as e:
            raise _transport_error(e, self.name) from e
        if response.status_code != 200:
            raise TransportError(
                f"ollama returned HTTP {response.status_code}",
                body=response.text,
                status_code=response.status_code,
            )
        return response.text


BACKENDS = {
    "openai": OpenAIBackend,
    "ollama": OllamaBackend,
}


def create_backend(settings: Settings) -> ChatBackend:
    """Create the backend selected by ``settings.ai_backend``."""
    backend_cls = BACKENDS.get(settings.ai_backend)
    if backend_cls is None:
        raise ValueError(f"Unknown AI backend: {settings.ai_backend!r} (expected one of {sorted(BACKENDS)})")
    return backend_cls(settings)
