"""ID helpers."""

from __future__ import annotations

import uuid


def new_session_id() -> str:
    """Return a canonical dashed UUID4 used as a session key."""
    return str(uuid.uuid4())


def chunk_id(page_number: int, index: int) -> str:
    """Stable chunk identifier derived from its page and ordinal."""
    return f"page_{page_number}_chunk_{index}"
