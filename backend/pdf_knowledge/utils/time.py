"""Time helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def elapsed_ms(started: float) -> float:
    """Milliseconds elapsed since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - started) * 1000.0
