"""Keyword scoring used when vector retrieval is unavailable."""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Sequence, Tuple

MIN_KEYWORD_LENGTH = 3


@dataclass(slots=True)
class RankedItem:
    identifier: str
    score: float
    position: int


def question_keywords(question: str) -> list[str]:
    """Distinct lowercase words longer than two characters, in order of appearance.

    Surrounding punctuation is stripped so "consideration?" matches "consideration".
    """
    seen: dict[str, None] = {}
    for token in question.lower().split():
        word = token.strip(string.punctuation)
        if len(word) >= MIN_KEYWORD_LENGTH:
            seen.setdefault(word, None)
    return list(seen)


def keyword_rank(question: str, documents: Sequence[Tuple[str, str]], top_k: int) -> list[RankedItem]:
    """Rank ``(id, text)`` documents by how many question words they contain.

    A word counts when it appears as a substring of the lowercased text.
    Scores are normalised by the number of keywords; documents scoring zero
    are dropped and ties keep input order.
    """
    keywords = question_keywords(question)
    if not keywords or top_k <= 0:
        return []
    ranked: list[RankedItem] = []
    for position, (identifier, text) in enumerate(documents):
        haystack = text.lower()
        hits = sum(1 for word in keywords if word in haystack)
        if hits > 0:
            ranked.append(RankedItem(identifier=identifier, score=hits / len(keywords), position=position))
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked[:top_k]


__all__ = ["RankedItem", "keyword_rank", "question_keywords"]
