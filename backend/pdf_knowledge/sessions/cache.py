"""In-memory TTL store for knowledge base sessions."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Sequence

from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.core.metrics import ACTIVE_SESSIONS
from pdf_knowledge.ingest.types import Chunk
from pdf_knowledge.models.entities import Session
from pdf_knowledge.utils.time import utc_now

logger = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass(slots=True)
class SessionRecord:
    """A session and its chunks, stored and expired together."""

    session: Session
    chunks: tuple[Chunk, ...]
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def expires_at(self) -> datetime:
        return self.session.expires_at


class SessionCache:
    """Keyed store of :class:`SessionRecord` entries with passive expiry.

    The registry lock only guards the dict; per-record locks serialise
    updates to one session. Expired records read as absent and are dropped
    when next touched or by :meth:`reap_expired`.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utc_now
        self._records: dict[str, SessionRecord] = {}
        self._registry_lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._records)

    def put(self, session: Session, chunks: Sequence[Chunk]) -> None:
        record = SessionRecord(session=copy.deepcopy(session), chunks=tuple(chunks))
        with self._registry_lock:
            self._records[session.session_id] = record
            ACTIVE_SESSIONS.set(len(self._records))

    def get_session(self, session_id: str) -> Session | None:
        record = self._live_record(session_id)
        if record is None:
            return None
        with record.lock:
            return copy.deepcopy(record.session)

    def get_chunks(self, session_id: str) -> list[Chunk] | None:
        """Stored chunks in order; callers must treat them as read-only."""
        record = self._live_record(session_id)
        if record is None:
            return None
        return list(record.chunks)

    def update(self, session_id: str, mutate: Callable[[Session], None]) -> Session | None:
        """Apply ``mutate`` to the stored session under its lock."""
        record = self._live_record(session_id)
        if record is None:
            return None
        with record.lock:
            # deleted or replaced since lookup
            if not self._is_current(session_id, record) or not record.session.is_active(self.now()):
                return None
            mutate(record.session)
            return copy.deepcopy(record.session)

    def extend(self, session_id: str, additional: timedelta) -> Session | None:
        def _push_expiry(session: Session) -> None:
            session.expires_at = session.expires_at + additional

        return self.update(session_id, _push_expiry)

    def delete(self, session_id: str) -> bool:
        with self._registry_lock:
            removed = self._records.pop(session_id, None)
            ACTIVE_SESSIONS.set(len(self._records))
        return removed is not None

    def list_active(self) -> list[Session]:
        self.reap_expired()
        with self._registry_lock:
            records = list(self._records.values())
        sessions: list[Session] = []
        now = self.now()
        for record in records:
            with record.lock:
                if record.session.is_active(now):
                    sessions.append(copy.deepcopy(record.session))
        sessions.sort(key=lambda item: item.created_at)
        return sessions

    def reap_expired(self) -> int:
        """Drop every expired record; returns how many were removed."""
        now = self.now()
        with self._registry_lock:
            expired = [key for key, record in self._records.items() if not record.session.is_active(now)]
            for key in expired:
                del self._records[key]
            ACTIVE_SESSIONS.set(len(self._records))
        for key in expired:
            logger.info("Session expired", extra=log_context(session_id=key, operation="reap"))
        return len(expired)

    def _is_current(self, session_id: str, record: SessionRecord) -> bool:
        with self._registry_lock:
            return self._records.get(session_id) is record

    def _live_record(self, session_id: str) -> SessionRecord | None:
        with self._registry_lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if record.session.is_active(self.now()):
                return record
            # expired: reclaim lazily
            del self._records[session_id]
            ACTIVE_SESSIONS.set(len(self._records))
        logger.info("Session expired", extra=log_context(session_id=session_id, operation="reclaim"))
        return None


__all__ = ["SessionCache", "SessionRecord", "Clock"]
