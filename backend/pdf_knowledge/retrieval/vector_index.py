"""Vector similarity and ranking."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(slots=True)
class SearchResult:
    chunk_id: str
    score: float
    position: int


@dataclass(slots=True)
class RankedResults:
    results: list[SearchResult]
    excluded: int = 0


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity clamped to [-1, 1]; 0.0 for mismatched or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = _dot(a, b)
    norm_a = math.sqrt(_dot(a, a))
    norm_b = math.sqrt(_dot(b, b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def rank_top_k(
    query: Sequence[float],
    candidates: Sequence[tuple[str, Sequence[float] | None]],
    k: int,
) -> RankedResults:
    """Score ``(id, vector)`` candidates against ``query`` and keep the best ``k``.

    Candidates without a vector, or with a vector of a different dimension,
    are skipped and counted in ``excluded``. Ties keep input order.
    """
    scored: list[SearchResult] = []
    excluded = 0
    for position, (candidate_id, vector) in enumerate(candidates):
        if not vector or len(vector) != len(query):
            excluded += 1
            continue
        scored.append(SearchResult(chunk_id=candidate_id, score=cosine_similarity(query, vector), position=position))
    scored.sort(key=lambda item: item.score, reverse=True)
    limit = max(0, min(k, len(scored)))
    return RankedResults(results=scored[:limit], excluded=excluded)


def _dot(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * y for x, y in zip(a, b))


__all__ = ["SearchResult", "RankedResults", "cosine_similarity", "rank_top_k"]
