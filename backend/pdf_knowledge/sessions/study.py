"""Prompt construction and output parsing for answers and study aids."""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Sequence, TypeVar

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.ingest.types import Chunk
from pdf_knowledge.models.dto import Flashcard, QuizQuestion
from pdf_knowledge.utils.text import truncate

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

ANSWER_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions based on uploaded document content. "
    "Be precise and only use information from the provided content. Cite specific sections when possible."
)
QUIZ_SYSTEM_PROMPT = (
    "You are an educational content creator. Generate high-quality quiz questions that test understanding "
    "of the material. Return ONLY a valid JSON array with no additional text or markdown formatting."
)
FLASHCARD_SYSTEM_PROMPT = (
    "You are a study assistant. Create effective flashcards that help with memorization and understanding "
    "of key concepts. Return ONLY a valid JSON array with no additional text or markdown formatting."
)
SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates clear, comprehensive summaries of educational content. "
    "Focus on accuracy and clarity."
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]")
CHARS_PER_WORD = 6
SUMMARY_SENTENCES = 5
KEY_CONCEPTS = 5


def join_context(chunks: Sequence[Chunk]) -> str:
    return "\n\n".join(chunk.text for chunk in chunks)


def build_answer_prompt(question: str, chunks: Sequence[Chunk]) -> str:
    return (
        "Based on the following information from the uploaded document, please answer the question.\n\n"
        f"Document Content:\n{join_context(chunks)}\n\n"
        f"Question: {question.strip()}\n\n"
        "Please provide a detailed answer based only on the information provided in the document content. "
        "If the answer cannot be found in the provided content, please say so clearly."
    )


def build_quiz_prompt(chunks: Sequence[Chunk], count: int, difficulty: str) -> str:
    example = orjson.dumps(
        [
            {
                "question": "What is..?",
                "options": ["Option A", "Option B", "Option C", "Option D"],
                "correctAnswer": "Option A",
                "explanation": "This is correct because...",
                "chapter": "Chapter 1",
                "difficulty": difficulty,
            }
        ],
        option=orjson.OPT_INDENT_2,
    ).decode("utf-8")
    return (
        f"Based on the following document content, generate {count} multiple choice quiz questions "
        f"with a difficulty level of {difficulty}.\n\n"
        f"Document Content:\n{join_context(chunks)}\n\n"
        "Return ONLY a valid JSON array in this EXACT format (no additional text, no markdown):\n"
        f"{example}\n\n"
        f"Generate {count} questions following this format exactly."
    )


def build_flashcard_prompt(chunks: Sequence[Chunk], count: int) -> str:
    example = orjson.dumps(
        [
            {
                "front": "What is consideration in contract law?",
                "back": "Something of value exchanged between parties...",
                "chapter": "Chapter 3",
                "context": "Additional context or examples",
            }
        ],
        option=orjson.OPT_INDENT_2,
    ).decode("utf-8")
    return (
        f"Based on the following document content, generate {count} flashcards for studying.\n\n"
        f"Document Content:\n{join_context(chunks)}\n\n"
        "Return ONLY a valid JSON array in this EXACT format (no additional text, no markdown):\n"
        f"{example}\n\n"
        f"Generate {count} flashcards following this format exactly."
    )


def build_summary_prompt(chapter: str, content: str, max_words: int) -> str:
    return (
        "Please provide a comprehensive summary of the following chapter content.\n"
        f"The summary should be approximately {max_words} words and should capture the main points, "
        "key concepts, and important details.\n\n"
        f"Chapter: {chapter}\n\n"
        f"Content:\n{content}\n\n"
        "Please provide a well-structured summary that includes:\n"
        "1. Main topic and purpose of the chapter\n"
        "2. Key concepts and ideas presented\n"
        "3. Important details and examples\n"
        "4. Conclusions or takeaways\n\n"
        "Summary:"
    )


def strip_code_fence(raw: str) -> str:
    """Remove one leading ```json or ``` marker and one trailing ``` marker."""
    text = raw.strip()
    if text.startswith("```json"):
        text = text[len("```json") :]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_items(raw: str, model: type[ModelT], session_id: str | None = None) -> list[ModelT]:
    """Parse a JSON array of ``model`` items; any failure yields ``[]``."""
    if not raw or not raw.strip():
        return []
    try:
        data: Any = orjson.loads(strip_code_fence(raw))
        return TypeAdapter(list[model]).validate_python(data)  # type: ignore[valid-type]
    except (orjson.JSONDecodeError, ValidationError) as exc:
        logger.warning(
            "Could not parse generated %s list: %s",
            model.__name__,
            exc.__class__.__name__,
            extra=log_context(session_id=session_id, operation="parse", preview=raw[:200]),
        )
        return []


def parse_quiz(raw: str, session_id: str | None = None) -> list[QuizQuestion]:
    return parse_items(raw, QuizQuestion, session_id)


def parse_flashcards(raw: str, session_id: str | None = None) -> list[Flashcard]:
    return parse_items(raw, Flashcard, session_id)


def placeholder_quiz(count: int, difficulty: str = "medium") -> list[QuizQuestion]:
    return [
        QuizQuestion(
            question=f"Sample question {index} about the document content?",
            options=["Option A", "Option B", "Option C", "Option D"],
            correct_answer="Option A",
            explanation="This is the correct answer because...",
            chapter="Chapter 1",
            difficulty=difficulty,
        )
        for index in range(1, count + 1)
    ]


def placeholder_flashcards(count: int) -> list[Flashcard]:
    return [
        Flashcard(
            front=f"Term {index}",
            back=f"Definition {index} - This is what the term means...",
            chapter="Chapter 1",
            context="Additional context and examples...",
        )
        for index in range(1, count + 1)
    ]


def extractive_summary(content: str, chapter: str, max_words: int) -> str:
    """Summary built from the text itself when no generation backend can help.

    Takes the first few sentences longer than 20 characters and appends the
    most frequent words longer than 5 characters as key concepts. The result
    is cut to ``max_words * 6`` characters.
    """
    sentences = [part.strip() for part in _SENTENCE_SPLIT_RE.split(content) if len(part.strip()) > 20]
    summary = f"Summary of {chapter}:\n\n"
    if sentences:
        summary += ". ".join(sentences[:SUMMARY_SENTENCES]) + "."
        counts = Counter(word.lower() for word in content.split() if len(word) > 5)
        concepts = [word for word, _ in counts.most_common(KEY_CONCEPTS)]
        if concepts:
            summary += f"\n\nKey concepts: {', '.join(concepts)}"
    else:
        summary += (
            "This chapter contains content that could not be automatically summarized. "
            "Please review the original text for details."
        )
    return truncate(summary, max_words * CHARS_PER_WORD)


__all__ = [
    "ANSWER_SYSTEM_PROMPT",
    "QUIZ_SYSTEM_PROMPT",
    "FLASHCARD_SYSTEM_PROMPT",
    "SUMMARY_SYSTEM_PROMPT",
    "build_answer_prompt",
    "build_quiz_prompt",
    "build_flashcard_prompt",
    "build_summary_prompt",
    "strip_code_fence",
    "parse_quiz",
    "parse_flashcards",
    "placeholder_quiz",
    "placeholder_flashcards",
    "extractive_summary",
]
