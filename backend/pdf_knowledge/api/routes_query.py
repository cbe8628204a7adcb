"""Query and study API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pdf_knowledge.api.dependencies import get_session_service
from pdf_knowledge.models.dto import (
    ChapterChunk,
    ChapterContentResponse,
    FlashcardRequest,
    FlashcardResponse,
    QueryMetadata,
    QueryRequest,
    QueryResponse,
    QuizRequest,
    QuizResponse,
    RelevantChunk,
    SummaryRequest,
    SummaryResponse,
)
from pdf_knowledge.sessions.service import KnowledgeSessionService

router = APIRouter()


@router.post("/{session_id}/query", response_model=QueryResponse, summary="Ask a question about the document")
def run_query(
    session_id: str,
    request: QueryRequest,
    service: KnowledgeSessionService = Depends(get_session_service),
) -> QueryResponse:
    result = service.query(session_id, request.question, request.max_chunks, request.temperature)
    return QueryResponse(
        session_id=result.session_id,
        question=result.question,
        answer=result.answer,
        relevant_chunks=[
            RelevantChunk(
                chunk_id=ref.chunk_id,
                text=ref.text,
                page_number=ref.page_number,
                chapter=ref.chapter,
                similarity_score=ref.similarity_score,
            )
            for ref in result.relevant_chunks
        ],
        metadata=QueryMetadata(
            processing_ms=result.processing_ms,
            tokens_used=result.tokens_used,
            model=result.model,
            executed_at=result.executed_at,
        ),
        success=result.success,
        error_message=result.error_message,
    )


@router.post("/{session_id}/quiz", response_model=QuizResponse, summary="Generate multiple-choice questions")
def generate_quiz(
    session_id: str,
    request: QuizRequest,
    service: KnowledgeSessionService = Depends(get_session_service),
) -> QuizResponse:
    questions = service.generate_quiz(session_id, request.count, request.difficulty)
    return QuizResponse(session_id=session_id, questions=questions)


@router.post("/{session_id}/flashcards", response_model=FlashcardResponse, summary="Generate study flashcards")
def generate_flashcards(
    session_id: str,
    request: FlashcardRequest,
    service: KnowledgeSessionService = Depends(get_session_service),
) -> FlashcardResponse:
    cards = service.generate_flashcards(session_id, request.count)
    return FlashcardResponse(session_id=session_id, flashcards=cards)


@router.get("/{session_id}/chapters", response_model=ChapterContentResponse, summary="Chunks whose chapter matches")
def chapter_content(
    session_id: str,
    q: str = Query(..., min_length=1, description="Case-insensitive chapter label fragment"),
    service: KnowledgeSessionService = Depends(get_session_service),
) -> ChapterContentResponse:
    chunks = service.get_chapter_content(session_id, q)
    return ChapterContentResponse(
        session_id=session_id,
        query=q,
        chunks=[
            ChapterChunk(
                chunk_id=chunk.id,
                text=chunk.text,
                page_number=chunk.page_number,
                chunk_index=chunk.chunk_index,
                chapter=chunk.chapter,
            )
            for chunk in chunks
        ],
    )


@router.post("/{session_id}/summary", response_model=SummaryResponse, summary="Summarise a chapter or page")
def summarize_chapter(
    session_id: str,
    request: SummaryRequest,
    service: KnowledgeSessionService = Depends(get_session_service),
) -> SummaryResponse:
    summary = service.summarize_chapter(session_id, request.chapter, request.max_words)
    return SummaryResponse(session_id=session_id, chapter=request.chapter, summary=summary)
