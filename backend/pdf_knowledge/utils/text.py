"""Text processing helpers."""

from __future__ import annotations

import re


WORD_RE = re.compile(r"\S+")


def word_count(text: str) -> int:
    """Count whitespace-delimited words."""
    return len(text.split())


def truncate(text: str, limit: int, marker: str = "...") -> str:
    """Cut text to ``limit`` characters, ending with ``marker`` when cut."""
    if len(text) <= limit:
        return text
    if limit <= len(marker):
        return marker[:limit]
    return text[: limit - len(marker)] + marker
