"""Search orchestration."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Sequence

from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.ingest.embeddings import Vectorizer
from pdf_knowledge.ingest.types import Chunk
from pdf_knowledge.retrieval.hybrid import keyword_rank

logger = get_logger(__name__)

PATH_VECTOR = "vector"
PATH_KEYWORD = "keyword"


@dataclass(slots=True)
class RetrievalOutcome:
    chunks: list[Chunk]
    path: str


class RetrievalRanker:
    """Picks the chunks most relevant to a question.

    Uses embedding similarity when the vectorizer is backed by a remote model
    and enough chunks carry vectors, otherwise counts keyword hits. Returned
    chunks are copies with ``similarity_score`` filled in; the inputs are
    never modified.
    """

    def __init__(self, vectorizer: Vectorizer, min_vector_coverage: float = 0.5) -> None:
        self.vectorizer = vectorizer
        self.min_vector_coverage = min_vector_coverage

    def find_relevant(self, chunks: Sequence[Chunk], question: str, top_k: int = 3) -> list[Chunk]:
        return self.rank(chunks, question, top_k).chunks

    def rank(
        self,
        chunks: Sequence[Chunk],
        question: str,
        top_k: int = 3,
        session_id: str | None = None,
    ) -> RetrievalOutcome:
        if not chunks or top_k <= 0:
            return RetrievalOutcome(chunks=[], path=PATH_KEYWORD)
        if self._vector_path_usable(chunks):
            try:
                return RetrievalOutcome(chunks=self._vector_search(chunks, question, top_k), path=PATH_VECTOR)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Vector retrieval failed, falling back to keywords: %s",
                    exc,
                    extra=log_context(session_id=session_id, operation="retrieve"),
                )
        return RetrievalOutcome(chunks=self._keyword_search(chunks, question, top_k), path=PATH_KEYWORD)

    # ------------------------------------------------------------------

    def _vector_path_usable(self, chunks: Sequence[Chunk]) -> bool:
        if not self.vectorizer.is_available():
            return False
        embedded = sum(1 for chunk in chunks if chunk.has_embedding)
        return embedded > 0 and embedded / len(chunks) >= self.min_vector_coverage

    def _vector_search(self, chunks: Sequence[Chunk], question: str, top_k: int) -> list[Chunk]:
        query_vector = self.vectorizer.try_embed(question)
        if not query_vector:
            raise ValueError("question embedding unavailable")
        ranked = self.vectorizer.top_k(
            query_vector,
            [(chunk.id, chunk.embedding) for chunk in chunks],
            top_k,
        )
        return [dataclasses.replace(chunks[hit.position], similarity_score=hit.score) for hit in ranked.results]

    def _keyword_search(self, chunks: Sequence[Chunk], question: str, top_k: int) -> list[Chunk]:
        ranked = keyword_rank(question, [(chunk.id, chunk.text) for chunk in chunks], top_k)
        return [dataclasses.replace(chunks[item.position], similarity_score=item.score) for item in ranked]


__all__ = ["RetrievalRanker", "RetrievalOutcome", "PATH_VECTOR", "PATH_KEYWORD"]
