"""Internal dataclasses representing session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class ProcessingStats:
    text_extraction_ms: float = 0.0
    chunking_ms: float = 0.0
    embedding_ms: float = 0.0
    total_ms: float = 0.0
    success: bool = True
    error_message: str | None = None


@dataclass(slots=True)
class QueryStats:
    total_queries: int = 0
    average_response_ms: float = 0.0
    last_query_at: datetime | None = None
    total_tokens_used: int = 0

    def record(self, response_ms: float, tokens_used: int, executed_at: datetime) -> None:
        """Fold one completed query into the running totals."""
        self.total_queries += 1
        n = self.total_queries
        self.average_response_ms = (self.average_response_ms * (n - 1) + response_ms) / n
        self.total_tokens_used += max(0, tokens_used)
        self.last_query_at = executed_at


@dataclass(slots=True)
class Session:
    session_id: str
    created_at: datetime
    expires_at: datetime
    file_name: str
    file_size: int
    page_count: int
    character_count: int
    chunk_count: int
    embeddings_generated: bool
    processing_stats: ProcessingStats = field(default_factory=ProcessingStats)
    query_stats: QueryStats = field(default_factory=QueryStats)
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_active(self, now: datetime) -> bool:
        return self.expires_at > now


__all__ = ["ProcessingStats", "QueryStats", "Session"]
