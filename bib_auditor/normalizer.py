"""
Text normalization applied before any section or citation parsing.
"""

import re

_SINGLE_QUOTES = re.compile(r"[‘’‚‛′]")
_DOUBLE_QUOTES = re.compile(r"[“”„‟″«»]")
_DASHES = re.compile(r"[‐‑‒–—―−]")
# Control characters left behind by PDF extraction; \t and \n are kept.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_SPACE = re.compile(r"[^\S\n]+")


def normalize_text(text: str) -> str:
    """Canonicalize quotes, dashes, whitespace and line endings.

    Newlines are preserved because line boundaries mark where bibliography
    entries start.
    """
    if not text:
        return ""

    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _CONTROL_CHARS.sub(" ", normalized)
    normalized = _SINGLE_QUOTES.sub("'", normalized)
    normalized = _DOUBLE_QUOTES.sub('"', normalized)
    normalized = _DASHES.sub("-", normalized)
    normalized = _HORIZONTAL_SPACE.sub(" ", normalized)
    return normalized
