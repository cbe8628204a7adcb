"""Hashing utilities."""

from __future__ import annotations

import hashlib


def text_seed(text: str) -> int:
    """Derive a stable integer seed from the exact text."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")
