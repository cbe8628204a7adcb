"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from pdf_knowledge.clients.openai import OpenAIClient
from pdf_knowledge.core.config import Settings, get_settings
from pdf_knowledge.ingest.embeddings import Vectorizer
from pdf_knowledge.ingest.pipeline import IngestPipeline
from pdf_knowledge.retrieval.search import RetrievalRanker
from pdf_knowledge.sessions.cache import SessionCache
from pdf_knowledge.sessions.service import KnowledgeSessionService

_CLIENT: OpenAIClient | None = None
_CACHE: SessionCache | None = None
_VECTORIZER: Vectorizer | None = None
_SESSION_SERVICE: KnowledgeSessionService | None = None
_PIPELINE: IngestPipeline | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_openai_client() -> OpenAIClient:
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = OpenAIClient(get_app_settings())
    return _CLIENT


def get_session_cache() -> SessionCache:
    global _CACHE
    if _CACHE is None:
        _CACHE = SessionCache()
    return _CACHE


def get_vectorizer() -> Vectorizer:
    global _VECTORIZER
    if _VECTORIZER is None:
        settings = get_app_settings()
        _VECTORIZER = Vectorizer(backend=get_openai_client(), dim=settings.embedding_dim)
    return _VECTORIZER


def get_session_service() -> KnowledgeSessionService:
    global _SESSION_SERVICE
    if _SESSION_SERVICE is None:
        settings = get_app_settings()
        _SESSION_SERVICE = KnowledgeSessionService(
            settings=settings,
            cache=get_session_cache(),
            ranker=RetrievalRanker(get_vectorizer(), settings.min_vector_coverage),
            generator=get_openai_client(),
        )
    return _SESSION_SERVICE


def get_ingest_pipeline() -> IngestPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = IngestPipeline(
            settings=get_app_settings(),
            service=get_session_service(),
            vectorizer=get_vectorizer(),
        )
    return _PIPELINE


__all__ = [
    "get_app_settings",
    "get_openai_client",
    "get_session_cache",
    "get_vectorizer",
    "get_session_service",
    "get_ingest_pipeline",
]
