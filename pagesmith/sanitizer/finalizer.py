"""
Finalizer for pagesmith

Flushes whatever the stream sanitizer still holds when the backend stream ends
without a document end marker (truncated generation, or a page that never
contained a start marker).

A response with no markup at all is still served as a page: the text is
wrapped in a minimal HTML document, one ``<br>`` per line break.
"""
from __future__ import annotations
import logging
import re

from pagesmith.sanitizer.cleaning import (
    clean,
    find_open_think,
    remove_think_blocks,
    strip_trailing_fence,
)
from pagesmith.sanitizer.stream import Phase, Session, StreamSanitizer

logger = logging.getLogger(__name__)

DOCTYPE = "<!DOCTYPE html>"

PLAIN_TEXT_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>pagesmith</title>
  <style>
    body { font-family: system-ui, -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; padding: 1rem; max-width: 800px; margin: 0 auto; }
    pre { background-color: #f5f5f5; padding: 1rem; border-radius: 4px; overflow-x: auto; }
    code { font-family: monospace; background-color: #f5f5f5; padding: 0.2rem 0.4rem; border-radius: 3px; }
  </style>
</head>
<body>
  <div class="content">
    {content}
  </div>
</body>
</html>"""

_HTML_TAG_RE = re.compile(r"<html|<body", re.IGNORECASE)


def wrap_plain_text(text: str) -> str:
    """Wrap text without any markup in a basic page; anything else is returned as is."""
    if not text or text.startswith("<") or _HTML_TAG_RE.search(text):
        return text
    return PLAIN_TEXT_PAGE.replace("{content}", text.replace("\n", "<br>\n"))


def ensure_doctype(text: str) -> str:
    """Prepend a doctype to a document that has an ``<html`` root but no doctype."""
    if re.search(r"<html", text, re.IGNORECASE) and not text.startswith("<!"):
        return DOCTYPE + "\n" + text
    return text


def finalize(session: Session) -> str:
    """Clean the residual buffer and return its unsent part.

    The session is closed afterwards; calling this twice returns "" the
    second time.
    """
    if session.phase is Phase.COMPLETE:
        return ""
    if not session.buffer:
        session.close()
        return ""

    buffer = session.buffer
    if session.phase is Phase.BUFFERING:
        logger.info("Stream ended without a document start marker; flushing %d buffered characters",
                    len(buffer))
        buffer = remove_think_blocks(buffer)
        open_think = find_open_think(buffer)
        if open_think != -1:
            logger.info("Dropping an unterminated reasoning block")
            buffer = buffer[:open_think]
    else:
        logger.info("Stream ended without a document end marker; output may be truncated")

    cleaned = strip_trailing_fence(clean(buffer)).rstrip()
    if session.phase is Phase.BUFFERING:
        cleaned = wrap_plain_text(cleaned)
    segment = session.advance(cleaned)
    session.close()
    return segment


def sanitize_document(text: str) -> str:
    """Run a complete response through the stream sanitizer in one piece.

    Nothing has been sent yet, so a missing doctype can still be added.
    """
    sanitizer = StreamSanitizer()
    document = sanitizer.feed(text) + finalize(sanitizer.session)
    return ensure_doctype(document)
