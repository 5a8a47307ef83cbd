"""
Reasoning model detection for pagesmith

Reasoning models emit their intermediate thinking unless asked not to; web
pages must never contain it.
"""
from __future__ import annotations
from typing import Iterable


def is_reasoning_model(model_name: str, patterns: Iterable[str]) -> bool:
    """Check the model name against configured patterns (case-insensitive substrings).

    Patterns are checked in order and the first match wins.
    """
    name = model_name.lower()
    for pattern in patterns:
        if pattern and pattern.lower() in name:
            return True
    return False
