"""Retrieval orchestration components."""

from .vector_index import SearchResult, cosine_similarity, rank_top_k
from .hybrid import keyword_rank, question_keywords

__all__ = [
    "SearchResult",
    "cosine_similarity",
    "rank_top_k",
    "keyword_rank",
    "question_keywords",
]
