"""Streaming output sanitizer."""
from pagesmith.sanitizer.cleaning import clean, remove_reasoning
from pagesmith.sanitizer.envelope import DecodedFrame, EnvelopeDecoder, decode, decode_body
from pagesmith.sanitizer.finalizer import finalize, sanitize_document
from pagesmith.sanitizer.stream import Phase, Session, StreamSanitizer

__all__ = [
    "clean",
    "remove_reasoning",
    "DecodedFrame",
    "EnvelopeDecoder",
    "decode",
    "decode_body",
    "finalize",
    "sanitize_document",
    "Phase",
    "Session",
    "StreamSanitizer",
]
