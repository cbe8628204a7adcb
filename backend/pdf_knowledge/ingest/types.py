"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class Chunk:
    """A contiguous slice of extracted text, the unit of retrieval."""

    id: str
    text: str
    page_number: int
    chunk_index: int
    total_chunks: int
    chapter: str | None = None
    embedding: list[float] | None = None
    similarity_score: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass(slots=True)
class ExtractionResult:
    """Per-page text produced by the extraction backend."""

    pages: dict[int, str]
    page_count: int
    success: bool
    error_message: str | None = None
    processing_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def character_count(self) -> int:
        return sum(len(text) for text in self.pages.values())

    @classmethod
    def failed(cls, message: str, processing_ms: float = 0.0) -> "ExtractionResult":
        return cls(pages={}, page_count=0, success=False, error_message=message, processing_ms=processing_ms)


@dataclass(slots=True)
class BuildStats:
    """Timings collected while building a knowledge base."""

    text_extraction_ms: float = 0.0
    chunking_ms: float = 0.0
    embedding_ms: float = 0.0
    chunks: int = 0
    embedded: int = 0

    def to_dict(self) -> dict[str, float | int]:
        return {
            "text_extraction_ms": self.text_extraction_ms,
            "chunking_ms": self.chunking_ms,
            "embedding_ms": self.embedding_ms,
            "chunks": self.chunks,
            "embedded": self.embedded,
        }


__all__ = [
    "Chunk",
    "ExtractionResult",
    "BuildStats",
]
