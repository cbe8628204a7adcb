"""Session-scoped knowledge base operations."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Sequence

from pdf_knowledge.clients.openai import GenerationBackend, GenerationResult
from pdf_knowledge.core.config import Settings
from pdf_knowledge.core.errors import InputError, SessionNotFoundError
from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.core.metrics import (
    GENERATION_FALLBACKS,
    QUERY_COUNT,
    QUERY_LATENCY,
    RETRIEVAL_PATH,
    SESSIONS_CREATED,
)
from pdf_knowledge.ingest.types import Chunk
from pdf_knowledge.models.dto import Flashcard, QuizQuestion
from pdf_knowledge.models.entities import ProcessingStats, QueryStats, Session
from pdf_knowledge.retrieval.search import RetrievalRanker
from pdf_knowledge.sessions import study
from pdf_knowledge.sessions.cache import SessionCache
from pdf_knowledge.utils.ids import new_session_id
from pdf_knowledge.utils.time import elapsed_ms

logger = get_logger(__name__)

PATH_FIRST_CHUNKS = "first_chunks"
ANSWER_MAX_TOKENS = 1000
STUDY_MAX_TOKENS = 2000
PREVIEW_CHARS = 200


@dataclass(slots=True)
class ChunkReference:
    chunk_id: str
    text: str
    page_number: int
    chapter: str | None
    similarity_score: float


@dataclass(slots=True)
class QueryResult:
    session_id: str
    question: str
    answer: str
    relevant_chunks: list[ChunkReference]
    processing_ms: float
    tokens_used: int
    model: str
    executed_at: datetime
    success: bool = True
    error_message: str | None = None
    retrieval_path: str = ""
    metadata: dict[str, object] = field(default_factory=dict)


class KnowledgeSessionService:
    """Create, query and maintain transient per-document knowledge bases."""

    def __init__(
        self,
        settings: Settings,
        cache: SessionCache,
        ranker: RetrievalRanker,
        generator: GenerationBackend,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.ranker = ranker
        self.generator = generator

    # Lifecycle --------------------------------------------------------

    def create(
        self,
        chunks: Sequence[Chunk],
        file_name: str,
        file_size: int,
        page_count: int,
        character_count: int,
        processing_stats: ProcessingStats | None = None,
        ttl: timedelta | None = None,
        metadata: dict[str, object] | None = None,
    ) -> str:
        ttl = ttl if ttl is not None else timedelta(minutes=self.settings.session_ttl_minutes)
        if ttl <= timedelta(0):
            raise InputError("Session duration must be positive")
        now = self.cache.now()
        session = Session(
            session_id=new_session_id(),
            created_at=now,
            expires_at=now + ttl,
            file_name=file_name,
            file_size=file_size,
            page_count=page_count,
            character_count=character_count,
            chunk_count=len(chunks),
            embeddings_generated=bool(chunks) and all(chunk.has_embedding for chunk in chunks),
            processing_stats=processing_stats or ProcessingStats(),
            query_stats=QueryStats(),
            metadata=dict(metadata or {}),
        )
        self.cache.put(session, chunks)
        SESSIONS_CREATED.inc()
        logger.info(
            "Created knowledge base for %s with %s chunks",
            file_name,
            len(chunks),
            extra=log_context(session_id=session.session_id, operation="create"),
        )
        return session.session_id

    def extend(self, session_id: str, additional: timedelta) -> bool:
        if additional <= timedelta(0):
            return False
        extended = self.cache.extend(session_id, additional)
        if extended is None:
            return False
        logger.info(
            "Extended session until %s",
            extended.expires_at.isoformat(),
            extra=log_context(session_id=session_id, operation="extend"),
        )
        return True

    def delete(self, session_id: str) -> bool:
        if self.cache.delete(session_id):
            logger.info("Deleted session", extra=log_context(session_id=session_id, operation="delete"))
        return True

    def get_info(self, session_id: str) -> Session:
        session = self.cache.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_active(self) -> list[Session]:
        return self.cache.list_active()

    def get_chunks(self, session_id: str) -> list[Chunk]:
        chunks = self.cache.get_chunks(session_id)
        if chunks is None:
            raise SessionNotFoundError(session_id)
        return chunks

    # Question answering -----------------------------------------------

    def query(
        self,
        session_id: str,
        question: str,
        max_chunks: int | None = None,
        temperature: float = 0.2,
    ) -> QueryResult:
        started = time.perf_counter()
        if not question or not question.strip():
            raise InputError("Question must not be empty")
        chunks = self.get_chunks(session_id)
        top_k = max_chunks or self.settings.default_max_chunks

        outcome = self.ranker.rank(chunks, question, top_k, session_id=session_id)
        relevant, path = outcome.chunks, outcome.path
        if not relevant:
            relevant = chunks[: self.settings.fallback_chunk_count]
            path = PATH_FIRST_CHUNKS
        RETRIEVAL_PATH.labels(path=path).inc()

        result = self._generate(
            study.build_answer_prompt(question, relevant),
            study.ANSWER_SYSTEM_PROMPT,
            temperature,
            ANSWER_MAX_TOKENS,
            session_id,
            "query",
        )
        processing_ms = elapsed_ms(started)
        executed_at = self.cache.now()
        self._record_query(session_id, processing_ms, result.tokens_used, executed_at)

        QUERY_COUNT.labels(status="success" if result.success else "error").inc()
        QUERY_LATENCY.observe(processing_ms / 1000.0)
        return QueryResult(
            session_id=session_id,
            question=question,
            answer=result.text,
            relevant_chunks=[_reference(chunk) for chunk in relevant],
            processing_ms=processing_ms,
            tokens_used=result.tokens_used,
            model=result.model,
            executed_at=executed_at,
            success=result.success,
            error_message=result.error_message,
            retrieval_path=path,
        )

    # Study aids -------------------------------------------------------

    def generate_quiz(self, session_id: str, count: int = 5, difficulty: str = "medium") -> list[QuizQuestion]:
        chunks = self.get_chunks(session_id)
        context = chunks[: self.settings.study_context_chunks]
        result = self._generate(
            study.build_quiz_prompt(context, count, difficulty),
            study.QUIZ_SYSTEM_PROMPT,
            0.7,
            STUDY_MAX_TOKENS,
            session_id,
            "quiz",
        )
        questions = study.parse_quiz(result.text, session_id) if result.success else []
        if not questions:
            GENERATION_FALLBACKS.labels(feature="quiz").inc()
            logger.warning("Using placeholder quiz questions", extra=log_context(session_id=session_id, operation="quiz"))
            return study.placeholder_quiz(count, difficulty)
        return questions[:count]

    def generate_flashcards(self, session_id: str, count: int = 10) -> list[Flashcard]:
        chunks = self.get_chunks(session_id)
        context = chunks[: self.settings.study_context_chunks]
        result = self._generate(
            study.build_flashcard_prompt(context, count),
            study.FLASHCARD_SYSTEM_PROMPT,
            0.7,
            STUDY_MAX_TOKENS,
            session_id,
            "flashcards",
        )
        cards = study.parse_flashcards(result.text, session_id) if result.success else []
        if not cards:
            GENERATION_FALLBACKS.labels(feature="flashcards").inc()
            logger.warning("Using placeholder flashcards", extra=log_context(session_id=session_id, operation="flashcards"))
            return study.placeholder_flashcards(count)
        return cards[:count]

    def get_chapter_content(self, session_id: str, chapter_query: str) -> list[Chunk]:
        chunks = self.cache.get_chunks(session_id)
        if not chunks or not chapter_query:
            return []
        needle = chapter_query.lower()
        return [chunk for chunk in chunks if chunk.chapter and needle in chunk.chapter.lower()]

    def summarize_chapter(self, session_id: str, chapter_query: str, max_words: int = 500) -> str:
        chunks = self.get_chunks(session_id)
        selected = self.get_chapter_content(session_id, chapter_query)
        if not selected:
            page_number = _as_int(chapter_query)
            if page_number is None:
                return (
                    f"No content found for chapter '{chapter_query}'. "
                    "Try using a page number or a different chapter name."
                )
            selected = [chunk for chunk in chunks if chunk.page_number == page_number]
            if not selected:
                return f"No content found for page {page_number}."

        content = study.join_context(sorted(selected, key=lambda chunk: chunk.page_number))
        if not content.strip():
            return f"Chapter '{chapter_query}' contains no readable text content."
        if not self.generator.is_configured():
            GENERATION_FALLBACKS.labels(feature="summary").inc()
            return study.extractive_summary(content, chapter_query, max_words)

        result = self._generate(
            study.build_summary_prompt(chapter_query, content, max_words),
            study.SUMMARY_SYSTEM_PROMPT,
            0.3,
            max(500, max_words * 2),
            session_id,
            "summary",
        )
        if result.success and result.text.strip():
            return result.text.strip()
        GENERATION_FALLBACKS.labels(feature="summary").inc()
        return study.extractive_summary(content, chapter_query, max_words)

    # Internal helpers -------------------------------------------------

    def _generate(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int,
        session_id: str,
        operation: str,
    ) -> GenerationResult:
        try:
            return self.generator.complete(prompt, system_prompt, temperature, max_tokens)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Generation backend failed: %s",
                exc,
                extra=log_context(session_id=session_id, operation=operation),
            )
            return GenerationResult(
                text="",
                tokens_used=0,
                model=self.settings.chat_model,
                success=False,
                error_message=str(exc) or exc.__class__.__name__,
            )

    def _record_query(self, session_id: str, response_ms: float, tokens_used: int, executed_at: datetime) -> None:
        updated = self.cache.update(
            session_id,
            lambda session: session.query_stats.record(response_ms, tokens_used, executed_at),
        )
        if updated is None:
            logger.warning(
                "Session ended before query stats were recorded",
                extra=log_context(session_id=session_id, operation="query"),
            )


def _reference(chunk: Chunk) -> ChunkReference:
    text = chunk.text
    if len(text) > PREVIEW_CHARS:
        text = text[:PREVIEW_CHARS] + "..."
    return ChunkReference(
        chunk_id=chunk.id,
        text=text,
        page_number=chunk.page_number,
        chapter=chunk.chapter,
        similarity_score=chunk.similarity_score,
    )


def _as_int(value: str) -> int | None:
    try:
        return int(value.strip())
    except ValueError:
        return None


__all__ = ["KnowledgeSessionService", "QueryResult", "ChunkReference"]
