"""Embedding utilities."""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Sequence

from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.retrieval.vector_index import RankedResults, cosine_similarity, rank_top_k
from pdf_knowledge.utils.hashing import text_seed

if TYPE_CHECKING:  # pragma: no cover
    from pdf_knowledge.clients.openai import EmbeddingBackend

logger = get_logger(__name__)

DEFAULT_DIM = 1536


class Vectorizer:
    """Embeds text through a remote backend with a deterministic local fallback."""

    def __init__(self, backend: "EmbeddingBackend | None" = None, dim: int = DEFAULT_DIM) -> None:
        self._backend = backend
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def backend_name(self) -> str:
        return "remote" if self.is_available() else "hashed"

    def is_available(self) -> bool:
        return self._backend is not None and self._backend.is_configured()

    def embed(self, text: str) -> list[float]:
        vector = self.try_embed(text)
        if vector is not None:
            return vector
        return fallback_embedding(text, self._dim)

    def similarity(self, a: Sequence[float] | None, b: Sequence[float] | None) -> float:
        return cosine_similarity(a, b)

    def top_k(
        self,
        query: Sequence[float],
        candidates: Sequence[tuple[str, Sequence[float] | None]],
        k: int,
    ) -> RankedResults:
        ranked = rank_top_k(query, candidates, k)
        if ranked.excluded:
            logger.debug(
                "Skipped candidates without a comparable vector",
                extra=log_context(operation="top_k", excluded=ranked.excluded),
            )
        return ranked

    def try_embed(self, text: str) -> list[float] | None:
        if not self.is_available():
            return None
        try:
            vector = self._backend.embed(text)  # type: ignore[union-attr]
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Embedding backend failed: %s",
                exc,
                extra=log_context(operation="embed"),
            )
            return None
        if not vector or not all(isinstance(value, (int, float)) for value in vector):
            logger.warning("Embedding backend returned an empty or malformed vector", extra=log_context(operation="embed"))
            return None
        return [float(value) for value in vector]


def fallback_embedding(text: str, dim: int = DEFAULT_DIM) -> list[float]:
    """Unit-length pseudo-random vector seeded from the SHA-256 of ``text``."""
    rng = random.Random(text_seed(text))
    vector = [rng.uniform(-1.0, 1.0) for _ in range(dim)]
    _normalize(vector)
    return vector


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["Vectorizer", "fallback_embedding"]
