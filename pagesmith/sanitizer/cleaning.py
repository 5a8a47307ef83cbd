"""
Cleaning Transform for pagesmith

Pure buffer -> buffer cleanup of model output. Extracts the HTML document from
surrounding prose and removes markdown artifacts (code fences, stray format
labels, inline code spans) that models wrap around generated pages.

The transform is idempotent: the cleanup steps are repeated until the text
stops changing, so ``clean(clean(x)) == clean(x)`` for any input.
"""
from __future__ import annotations
import json
import re
from typing import Optional

START_MARKER_RE = re.compile(r"<!doctype html|<html", re.IGNORECASE)
END_MARKER = "</html>"
END_MARKER_RE = re.compile(re.escape(END_MARKER), re.IGNORECASE)

# Language tags models put on fences around generated pages
FORMAT_TAGS = (
    "html", "htm", "xhtml", "xml", "svg", "css", "javascript", "js",
    "json", "markdown", "md", "text", "plaintext",
)
_FORMAT_TAG_SET = frozenset(FORMAT_TAGS)

# Longest tags first so "html" wins over "htm"
_TAG_PATTERN = "|".join(sorted(FORMAT_TAGS, key=len, reverse=True))

FENCE_RE = re.compile(
    r"```(?:(?:%s)(?![\w-]))?[ \t]*\r?\n?" % _TAG_PATTERN,
    re.IGNORECASE,
)
INLINE_CODE_RE = re.compile(r"`[^`<>\n]*`")
BLANK_RUN_RE = re.compile(r"\n{3,}")
TRAILING_FENCE_RE = re.compile(r"`{1,3}\s*\Z")
THINK_BLOCK_RE = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
# Qwen-style reasoning: "think" and "/think" alone on their own lines
PLAIN_THINK_BLOCK_RE = re.compile(
    r"^[ \t]*think[ \t]*\n.*?^[ \t]*/think[ \t]*$\n?",
    re.IGNORECASE | re.DOTALL | re.MULTILINE,
)
OPEN_THINK_RE = re.compile(r"<think>|^[ \t]*think[ \t]*$", re.IGNORECASE | re.MULTILINE)


# =============================================================================
# Document boundaries
# =============================================================================

def find_document_start(text: str) -> int:
    """Offset of the earliest document start marker, or -1."""
    match = START_MARKER_RE.search(text)
    return match.start() if match else -1


def find_document_end(text: str) -> int:
    """Offset just past the first document end marker, or -1."""
    match = END_MARKER_RE.search(text)
    return match.end() if match else -1


def _find_last_document_end(text: str) -> int:
    last: Optional[re.Match] = None
    for last in END_MARKER_RE.finditer(text):
        pass
    return last.end() if last else -1


def extract_document(text: str) -> str:
    """Drop prose before the first start marker and after the last end marker."""
    start = find_document_start(text)
    if start > 0:
        text = text[start:]
    end = _find_last_document_end(text)
    if end != -1:
        text = text[:end]
    return text


# =============================================================================
# Artifact removal
# =============================================================================

def remove_fences(text: str) -> str:
    return FENCE_RE.sub("", text)


def remove_label_line(text: str) -> str:
    """Remove a leading line that consists of nothing but a format name.

    Only a whole line can match, so markup such as ``<html lang="en">`` is
    never touched.
    """
    body = text.lstrip()
    first, newline, rest = body.partition("\n")
    if first.strip().lower() in _FORMAT_TAG_SET:
        return rest if newline else ""
    return text


def remove_inline_code(text: str) -> str:
    return INLINE_CODE_RE.sub("", text)


def collapse_blank_lines(text: str) -> str:
    return BLANK_RUN_RE.sub("\n\n", text)


def strip_trailing_fence(text: str) -> str:
    """Strip a fence remnant left at the end by a stream cut mid-fence."""
    return TRAILING_FENCE_RE.sub("", text)


def _clean_pass(text: str) -> str:
    text = extract_document(text)
    text = remove_fences(text)
    text = remove_label_line(text)
    text = remove_inline_code(text)
    text = collapse_blank_lines(text)
    text = strip_trailing_fence(text)
    return text.strip()


def clean(text: str) -> str:
    """Apply the full cleaning transform to a buffer."""
    previous = None
    while text != previous:
        previous = text
        text = _clean_pass(text)
    return text


# =============================================================================
# Reasoning output
# =============================================================================

def remove_think_blocks(text: str) -> str:
    """Remove closed ``<think>...</think>`` and plain ``think``/``/think`` blocks."""
    text = THINK_BLOCK_RE.sub("", text)
    return PLAIN_THINK_BLOCK_RE.sub("", text)


def find_open_think(text: str) -> int:
    """Offset of a reasoning block that has not been closed yet, or -1.

    Expects closed blocks to be removed already.
    """
    match = OPEN_THINK_RE.search(text)
    return match.start() if match else -1


def remove_reasoning(text: str) -> str:
    """Strip reasoning output from a complete (non-streamed) model answer.

    Handles ``{"thinking": ..., "answer": ...}`` structured replies and
    think blocks. A block that was never closed before the document starts
    is cut off with everything after it.
    """
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            structured = json.loads(stripped)
        except (ValueError, RecursionError):
            structured = None
        if isinstance(structured, dict) and isinstance(structured.get("answer"), str):
            text = structured["answer"]

    text = remove_think_blocks(text)
    open_think = find_open_think(text)
    if open_think == -1:
        return text
    start = find_document_start(text)
    if start != -1 and start < open_think:
        return text
    return text[:open_think]
