"""
Envelope Decoder for pagesmith

Extracts the text fragment carried by one raw transport frame. Backends wrap
content in incompatible JSON envelopes (OpenAI-style deltas, Gemini candidates,
Ollama chat messages, providers returning ``{"String": ...}`` content objects),
so decoding is an ordered list of extractor strategies where the first match
wins. Decoding never raises: a frame nothing understands decodes to empty text.
"""
from __future__ import annotations
import json
import logging
from typing import Any, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
_NON_DATA_FIELDS = {"event", "id", "retry"}
_TEXT_KEYS = ("text", "content", "value", "message")
_MAX_SEARCH_DEPTH = 32

# Marks a frame whose data is not valid JSON
NOT_JSON = object()
# Marks a JSON frame nested deeper than the parser allows
TOO_DEEP = object()


class DecodedFrame(NamedTuple):
    """Result of decoding one transport frame."""
    text: str = ""
    recognized: bool = False
    done: bool = False
    error: Optional[str] = None


def _dig(value: Any, *path: Any) -> Any:
    """Follow dict keys / list indices, returning None when the path breaks."""
    for key in path:
        if isinstance(key, int):
            if not isinstance(value, list) or len(value) <= key:
                return None
        elif not isinstance(value, dict) or key not in value:
            return None
        value = value[key]
    return value


def _load_json(data: str) -> Any:
    try:
        return json.loads(data)
    except ValueError:
        return NOT_JSON
    except RecursionError:
        # Nested too deep to be a content envelope
        logger.debug("Frame nested too deeply to parse (%d characters)", len(data))
        return TOO_DEEP


# =============================================================================
# Extractor strategies
# =============================================================================

class Extractor:
    """One envelope shape. ``try_extract`` returns ``(text, matched)``."""

    name = "extractor"

    def try_extract(self, data: str, payload: Any) -> Tuple[str, bool]:
        raise NotImplementedError


class CandidatesExtractor(Extractor):
    """Gemini style: ``candidates[0].content.parts[0].text``."""

    name = "candidates"

    def try_extract(self, data, payload):
        text = _dig(payload, "candidates", 0, "content", "parts", 0, "text")
        if isinstance(text, str):
            return text, True
        return "", False


class ChoicesExtractor(Extractor):
    """OpenAI style: ``choices[0].delta.content`` or ``choices[0].message.content``."""

    name = "choices"

    def try_extract(self, data, payload):
        for container in ("delta", "message"):
            text = _dig(payload, "choices", 0, container, "content")
            if isinstance(text, str):
                return text, True
        return "", False


class OllamaExtractor(Extractor):
    """Ollama chat (``message.content``) and generate (``response``) frames."""

    name = "ollama"

    def try_extract(self, data, payload):
        text = _dig(payload, "message", "content")
        if isinstance(text, str):
            return text, True
        text = _dig(payload, "response")
        if isinstance(text, str):
            return text, True
        return "", False


class ContentObjectExtractor(Extractor):
    """Providers that send ``content`` as an object instead of a string."""

    name = "content-object"

    def try_extract(self, data, payload):
        for container_name in ("delta", "message"):
            container = _dig(payload, "choices", 0, container_name)
            if not isinstance(container, dict):
                continue
            content = container.get("content")
            if isinstance(content, dict):
                text = self._from_object(content)
                if text is not None:
                    return text, True
            # Some providers put text/parts directly on the container
            text = self._from_object(container)
            if text:
                return text, True
        return "", False

    @staticmethod
    def _from_object(obj: dict) -> Optional[str]:
        for key in ("String", "text"):
            if isinstance(obj.get(key), str):
                return obj[key]
        part = _dig(obj, "parts", 0)
        if isinstance(part, str):
            return part
        if isinstance(_dig(part, "text"), str):
            return part["text"]
        return None


class DeepSearchExtractor(Extractor):
    """Best-effort recursive search for a plausible text field.

    Heuristic: with several text-bearing keys the first one in document order
    wins, which is not always the right one.
    """

    name = "deep-search"

    def try_extract(self, data, payload):
        if not isinstance(payload, dict):
            return "", False
        text = self._search(payload, 0)
        return text, bool(text)

    def _search(self, obj: dict, depth: int) -> str:
        if depth > _MAX_SEARCH_DEPTH:
            return ""
        for key in _TEXT_KEYS:
            value = obj.get(key)
            if isinstance(value, str) and value:
                return value
        for value in obj.values():
            if isinstance(value, dict):
                text = self._search(value, depth + 1)
                if text:
                    return text
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict):
                        text = self._search(item, depth + 1)
                        if text:
                            return text
                    elif isinstance(item, str) and len(item) > 5 and not item.startswith("http"):
                        return item
        return ""


class RawTextExtractor(Extractor):
    """Last resort: a non-JSON frame is content as-is."""

    name = "raw"

    def try_extract(self, data, payload):
        if payload is NOT_JSON and data and not data.startswith("{"):
            return data, True
        return "", False


DEFAULT_EXTRACTORS: List[Extractor] = [
    CandidatesExtractor(),
    ChoicesExtractor(),
    OllamaExtractor(),
    ContentObjectExtractor(),
    DeepSearchExtractor(),
    RawTextExtractor(),
]


# =============================================================================
# Decoder
# =============================================================================

def unframe(frame: str) -> Optional[str]:
    """Strip event-stream framing. Returns None for lines without data."""
    line = frame.strip()
    if not line or line.startswith(":"):
        return None
    field, sep, value = line.partition(":")
    if sep and field in _NON_DATA_FIELDS:
        return None
    if sep and field == "data":
        return value.strip()
    return line


def _dump(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError, RecursionError):
        return "provider error"


def _provider_error(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict) or "error" not in payload:
        return None
    error = payload["error"]
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) else _dump(error)
    if isinstance(error, str):
        return error
    return None


class EnvelopeDecoder:
    """Decodes frames by trying each extractor in order."""

    def __init__(self, extractors: Optional[List[Extractor]] = None):
        self.extractors = list(extractors or DEFAULT_EXTRACTORS)

    def decode(self, frame: str) -> DecodedFrame:
        data = unframe(frame)
        if data is None:
            return DecodedFrame()
        if data == DONE_SENTINEL:
            return DecodedFrame(recognized=True, done=True)

        payload = _load_json(data)
        error = _provider_error(payload)
        if error is not None:
            return DecodedFrame(recognized=True, error=error)

        for extractor in self.extractors:
            try:
                text, matched = extractor.try_extract(data, payload)
            except (TypeError, ValueError, KeyError, IndexError, AttributeError, RecursionError) as e:
                logger.debug("Extractor %s failed on frame: %s", extractor.name, e)
                continue
            if matched:
                return DecodedFrame(text=text, recognized=True)

        logger.debug("Undecodable frame: %.200s", data)
        return DecodedFrame()

    def decode_body(self, body: str) -> str:
        """Extract the text of a complete (non-streamed) response body.

        Handles a single JSON document as well as bodies that arrive as
        event-stream or newline-delimited JSON despite a non-streaming request.
        """
        text = body.strip()
        if not text:
            return ""
        if _load_json(text) is not NOT_JSON:
            return self.decode(text).text
        lines = [line for line in text.splitlines() if line.strip()]
        if any(line.lstrip().startswith(("data:", "{")) for line in lines):
            return "".join(self.decode(line).text for line in lines)
        return text


_default_decoder = EnvelopeDecoder()


def decode(frame: str) -> DecodedFrame:
    """Decode one frame with the default extractor chain."""
    return _default_decoder.decode(frame)


def decode_body(body: str) -> str:
    return _default_decoder.decode_body(body)
