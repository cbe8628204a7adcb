"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProcessingStatsResponse(BaseModel):
    text_extraction_ms: float
    chunking_ms: float
    embedding_ms: float
    total_ms: float
    success: bool
    error_message: str | None = None


class QueryStatsResponse(BaseModel):
    total_queries: int
    average_response_ms: float
    last_query_at: datetime | None = None
    total_tokens_used: int


class SessionResponse(BaseModel):
    session_id: str
    created_at: datetime
    expires_at: datetime
    file_name: str
    file_size: int
    page_count: int
    character_count: int
    chunk_count: int
    embeddings_generated: bool
    processing_stats: ProcessingStatsResponse
    query_stats: QueryStatsResponse
    metadata: dict[str, Any] = Field(default_factory=dict)


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]


class ExtendRequest(BaseModel):
    minutes: int = Field(description="Minutes to add to the session lease")


class ExtendResponse(BaseModel):
    extended: bool
    expires_at: datetime | None = None


class DeleteResponse(BaseModel):
    status: Literal["ok"] = "ok"
    deleted: bool = True


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    max_chunks: int | None = Field(default=None, ge=1, le=50)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)


class RelevantChunk(BaseModel):
    chunk_id: str
    text: str
    page_number: int
    chapter: str | None = None
    similarity_score: float


class QueryMetadata(BaseModel):
    processing_ms: float
    tokens_used: int
    model: str
    executed_at: datetime


class QueryResponse(BaseModel):
    session_id: str
    question: str
    answer: str
    relevant_chunks: list[RelevantChunk]
    metadata: QueryMetadata
    success: bool
    error_message: str | None = None


class QuizQuestion(BaseModel):
    """One multiple-choice question; ``correctAnswer`` is accepted on input."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: list[str] = Field(min_length=4, max_length=4)
    correct_answer: str = Field(alias="correctAnswer")
    explanation: str = ""
    chapter: str = ""
    difficulty: str = "medium"

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> "QuizQuestion":
        if self.correct_answer not in self.options:
            raise ValueError("correctAnswer must be one of the options")
        return self


class Flashcard(BaseModel):
    front: str
    back: str
    chapter: str = ""
    context: str = ""


class QuizRequest(BaseModel):
    count: int = Field(default=5, ge=1, le=50)
    difficulty: Literal["easy", "medium", "hard"] = "medium"


class QuizResponse(BaseModel):
    session_id: str
    questions: list[QuizQuestion]


class FlashcardRequest(BaseModel):
    count: int = Field(default=10, ge=1, le=100)


class FlashcardResponse(BaseModel):
    session_id: str
    flashcards: list[Flashcard]


class ChapterChunk(BaseModel):
    chunk_id: str
    text: str
    page_number: int
    chunk_index: int
    chapter: str | None = None


class ChapterContentResponse(BaseModel):
    session_id: str
    query: str
    chunks: list[ChapterChunk]


class SummaryRequest(BaseModel):
    chapter: str = Field(min_length=1)
    max_words: int = Field(default=500, ge=10, le=5000)


class SummaryResponse(BaseModel):
    session_id: str
    chapter: str
    summary: str


__all__ = [
    "ProcessingStatsResponse",
    "QueryStatsResponse",
    "SessionResponse",
    "SessionListResponse",
    "ExtendRequest",
    "ExtendResponse",
    "DeleteResponse",
    "QueryRequest",
    "RelevantChunk",
    "QueryMetadata",
    "QueryResponse",
    "QuizQuestion",
    "Flashcard",
    "QuizRequest",
    "QuizResponse",
    "FlashcardRequest",
    "FlashcardResponse",
    "ChapterChunk",
    "ChapterContentResponse",
    "SummaryRequest",
    "SummaryResponse",
]
