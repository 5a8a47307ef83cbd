"""
Boundary-Aware Stream Sanitizer for pagesmith

Incremental state machine fed with decoded text fragments. It buffers model
chatter until an HTML document starts, then re-cleans the whole buffer on every
fragment and emits only the part of the cleaned document not sent before, and
stops for good at the document end marker.

Each request gets its own ``Session``; nothing here is shared between requests.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pagesmith.sanitizer.cleaning import (
    clean,
    find_document_end,
    find_document_start,
    find_open_think,
    remove_think_blocks,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    BUFFERING = "buffering"
    STREAMING = "streaming"
    COMPLETE = "complete"


@dataclass
class Session:
    """Per-request sanitizer state."""
    buffer: str = ""
    sent: str = ""
    sent_offset: int = 0
    phase: Phase = Phase.BUFFERING
    frames: int = 0
    received_chars: int = 0
    emitted_chars: int = 0
    discarded_chars: int = 0
    held_back: int = 0

    @property
    def truncated(self) -> bool:
        """Whether content after the document end marker was dropped."""
        return self.discarded_chars > 0

    def advance(self, cleaned: str) -> str:
        """Return the unsent suffix of ``cleaned`` and move the offset past it.

        Nothing is returned while ``cleaned`` does not extend the text already
        sent; bytes on the wire cannot be taken back.
        """
        if len(cleaned) <= self.sent_offset:
            return ""
        if not cleaned.startswith(self.sent):
            self.held_back += 1
            logger.debug("Cleaned buffer no longer extends the sent text; holding output")
            return ""
        segment = cleaned[self.sent_offset:]
        self.sent = cleaned
        self.sent_offset = len(cleaned)
        self.emitted_chars += len(segment)
        return segment

    def close(self):
        self.buffer = ""
        self.phase = Phase.COMPLETE


def stable_length(buffer: str) -> int:
    """Length of the buffer prefix that can no longer change when cleaned.

    Inline code spans and fence tokens never cross ``<`` or ``>``. A newline
    only ends them when its line segment has no backtick: a fence at the end
    of a line takes the newline with it and joins the lines around it. From
    the first backtick after the last such boundary on, text is held back
    until it resolves.
    """
    resolved = -1
    has_tick = False
    for index, char in enumerate(buffer):
        if char == "`":
            has_tick = True
        elif char == "<" or char == ">" or (char == "\n" and not has_tick):
            resolved = index
            has_tick = False
        elif char == "\n":
            has_tick = False

    tick = buffer.find("`", resolved + 1)
    return len(buffer) if tick == -1 else tick


class StreamSanitizer:
    """Turns an ordered sequence of text fragments into cleaned segments."""

    def __init__(self, session: Optional[Session] = None):
        self.session = session or Session()

    @property
    def phase(self) -> Phase:
        return self.session.phase

    def feed(self, fragment: str) -> str:
        """Consume one fragment and return the newly cleaned segment (maybe empty)."""
        session = self.session
        if session.phase is Phase.COMPLETE:
            session.discarded_chars += len(fragment)
            return ""
        if not fragment:
            return ""

        session.frames += 1
        session.received_chars += len(fragment)
        session.buffer += fragment

        if session.phase is Phase.BUFFERING:
            start = self._find_start()
            if start == -1:
                return ""
            if start:
                logger.debug("Discarding %d characters of preamble", start)
            session.buffer = session.buffer[start:]
            session.phase = Phase.STREAMING

        return self._stream()

    def _find_start(self) -> int:
        """Start marker offset outside any reasoning block, or -1 while waiting."""
        session = self.session
        session.buffer = remove_think_blocks(session.buffer)
        start = find_document_start(session.buffer)
        open_think = find_open_think(session.buffer)
        if open_think != -1 and (start == -1 or open_think < start):
            # Markup mentioned while the model is still reasoning
            return -1
        return start

    def _stream(self) -> str:
        session = self.session
        end = find_document_end(session.buffer)
        if end == -1:
            stable = session.buffer[:stable_length(session.buffer)]
            return session.advance(clean(stable))

        # Document complete: anything after the end marker is model chatter
        trailing = len(session.buffer) - end
        session.discarded_chars += trailing
        segment = session.advance(clean(session.buffer[:end]))
        session.close()
        if trailing:
            logger.debug("Discarded %d characters after document end", trailing)
        return segment
