"""Chunking utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Callable, Iterable, Mapping, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from pdf_knowledge.ingest.types import Chunk
from pdf_knowledge.utils.ids import chunk_id
from pdf_knowledge.utils.text import WORD_RE, word_count

_PARAGRAPH_RE = re.compile(r"\n\s*\n", re.MULTILINE)
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")

_NUMBER_WORDS = "one|two|three|four|five|six|seven|eight|nine|ten"

DEFAULT_CHAPTER_PATTERNS: tuple[str, ...] = (
    rf"^(chapter|ch\.?)\s+(\d+|[ivxlcdm]+|{_NUMBER_WORDS})\b",
    rf"^(part|section)\s+(\d+|[ivxlcdm]+|{_NUMBER_WORDS})\b",
    r"^\d+\.\s+[a-z][a-z\s]+$",
    r"^[ivx]+\.\s+[a-z][a-z\s]+$",
)
DOCUMENT_TITLE = "Document"
HEADING_SCAN_LINES = 5


class ChunkingStrategy(str, Enum):
    WORD_BASED = "word_based"
    SENTENCE_BASED = "sentence_based"
    PARAGRAPH_BASED = "paragraph_based"
    SEMANTIC = "semantic"
    CHAPTER_BASED = "chapter_based"


class ChunkingSettings(BaseModel):
    """Chunk size budget and strategy selection.

    Sizes are counted in words for ``word_based`` and in characters for every
    other strategy. ``min_chunk_size`` is always a character count.
    """

    max_chunk_size: int = Field(default=1000, gt=0)
    min_chunk_size: int = Field(default=100, ge=0)
    overlap_size: int = Field(default=200, ge=0)
    strategy: ChunkingStrategy = ChunkingStrategy.SENTENCE_BASED
    chapter_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_CHAPTER_PATTERNS))
    merge_small_chunks: bool = True
    max_heading_length: int = Field(default=100, gt=0)

    model_config = {"frozen": True}

    @field_validator("chapter_patterns")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid chapter pattern {pattern!r}: {exc}") from exc
        return value

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingSettings":
        if self.overlap_size >= self.max_chunk_size:
            raise ValueError("overlap_size must be smaller than max_chunk_size")
        return self


@dataclass(slots=True)
class Piece:
    text: str
    chapter: str | None = None
    # leading characters repeated from the previous piece
    overlap: int = 0


def chunk_text(text: str, page_number: int = 1, settings: ChunkingSettings | None = None) -> list[Chunk]:
    """Split one page of text into ordered chunks using the configured strategy."""
    settings = settings or ChunkingSettings()
    if not text or not text.strip():
        return []
    strategy = _STRATEGIES[settings.strategy]
    pieces = strategy(text, settings)
    if settings.merge_small_chunks:
        pieces = merge_small_pieces(pieces, settings)
    pieces = [piece for piece in pieces if len(piece.text) >= settings.min_chunk_size]
    return _build_chunks(pieces, page_number, settings)


def chunk_pages(pages: Mapping[int, str], settings: ChunkingSettings | None = None) -> list[Chunk]:
    """Chunk every page in page-number order."""
    chunks: list[Chunk] = []
    for page_number in sorted(pages):
        chunks.extend(chunk_text(pages[page_number], page_number, settings))
    return chunks


# Strategies ---------------------------------------------------------------


def _chunk_by_words(text: str, settings: ChunkingSettings) -> list[Piece]:
    spans = [match.span() for match in WORD_RE.finditer(text)]
    size = settings.max_chunk_size
    overlap = settings.overlap_size
    step = size - overlap
    pieces: list[Piece] = []
    for start in range(0, len(spans), step):
        window = spans[start : start + size]
        piece_text = text[window[0][0] : window[-1][1]]
        repeated = 0
        if start > 0 and overlap > 0:
            first_new = start + overlap
            repeated = spans[first_new][0] - window[0][0] if first_new < len(spans) else len(piece_text)
        if len(piece_text) >= settings.min_chunk_size:
            pieces.append(Piece(text=piece_text, overlap=repeated))
        if start + size >= len(spans):
            break
    return pieces


def _chunk_by_sentences(text: str, settings: ChunkingSettings) -> list[Piece]:
    return _accumulate(split_sentences(text), settings, joiner=" ")


def _chunk_by_paragraphs(text: str, settings: ChunkingSettings) -> list[Piece]:
    paragraphs = [part.strip() for part in _PARAGRAPH_RE.split(text) if part.strip()]
    return _accumulate(paragraphs, settings, joiner="\n\n")


def _chunk_semantically(text: str, settings: ChunkingSettings) -> list[Piece]:
    # no topic segmentation; sentence windows stand in for it
    return _chunk_by_sentences(text, settings)


def _chunk_by_chapters(text: str, settings: ChunkingSettings) -> list[Piece]:
    pieces: list[Piece] = []
    for title, body in split_into_chapters(text, settings.chapter_patterns, settings.max_heading_length):
        pieces.extend(_accumulate(split_sentences(body), settings, joiner=" ", chapter=title))
    return pieces


_STRATEGIES: dict[ChunkingStrategy, Callable[[str, ChunkingSettings], list[Piece]]] = {
    ChunkingStrategy.WORD_BASED: _chunk_by_words,
    ChunkingStrategy.SENTENCE_BASED: _chunk_by_sentences,
    ChunkingStrategy.PARAGRAPH_BASED: _chunk_by_paragraphs,
    ChunkingStrategy.SEMANTIC: _chunk_semantically,
    ChunkingStrategy.CHAPTER_BASED: _chunk_by_chapters,
}


def _accumulate(
    units: Sequence[str],
    settings: ChunkingSettings,
    joiner: str,
    chapter: str | None = None,
) -> list[Piece]:
    pieces: list[Piece] = []
    current = ""
    seed_len = 0
    for unit in units:
        if len(current) > seed_len and len(current) + len(unit) > settings.max_chunk_size:
            flushed = current.strip()
            pieces.append(Piece(text=flushed, chapter=chapter, overlap=min(seed_len, len(flushed))))
            current = _overlap_tail(flushed, settings.overlap_size)
            seed_len = len(current)
        current += unit + joiner
    if len(current) > seed_len and current.strip():
        flushed = current.strip()
        pieces.append(Piece(text=flushed, chapter=chapter, overlap=min(seed_len, len(flushed))))
    return pieces


def _overlap_tail(text: str, overlap_size: int) -> str:
    if overlap_size <= 0:
        return ""
    words = text.split()
    kept: list[str] = []
    budget = 0
    # never repeat the whole chunk
    for word in reversed(words[1:]):
        cost = len(word) + (1 if kept else 0)
        if budget + cost > overlap_size:
            break
        kept.append(word)
        budget += cost
    if not kept:
        return ""
    return " ".join(reversed(kept)) + " "


def merge_small_pieces(pieces: Iterable[Piece], settings: ChunkingSettings) -> list[Piece]:
    """Fold undersized pieces into their predecessor when the result still fits."""
    merged: list[Piece] = []
    for piece in pieces:
        if merged and len(piece.text) < settings.min_chunk_size:
            last = merged[-1]
            addition = piece.text[piece.overlap :].strip()
            if last.chapter == piece.chapter:
                combined = f"{last.text} {addition}" if addition else last.text
                if len(combined) <= settings.max_chunk_size:
                    last.text = combined
                    continue
        merged.append(piece)
    return merged


# Splitting and headings ---------------------------------------------------


def split_sentences(text: str) -> list[str]:
    """Split on ``.``, ``!`` or ``?`` followed by whitespace."""
    return [sentence for sentence in _SENTENCE_BREAK_RE.split(text.strip()) if sentence.strip()]


def split_into_chapters(
    text: str,
    patterns: Sequence[str] = DEFAULT_CHAPTER_PATTERNS,
    max_heading_length: int = 100,
) -> list[tuple[str, str]]:
    """Partition text into ``(title, body)`` sections at detected headings.

    The heading line stays at the top of its section body.
    """
    compiled = _compile_patterns(tuple(patterns))
    sections: list[tuple[str, str]] = []
    title: str | None = None
    body: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and _is_heading(stripped, compiled, max_heading_length):
            if "".join(body).strip():
                sections.append((title or DOCUMENT_TITLE, "\n".join(body)))
            title = stripped
            body = [line]
        else:
            body.append(line)
    if "".join(body).strip():
        sections.append((title or DOCUMENT_TITLE, "\n".join(body)))
    if not sections:
        sections.append((DOCUMENT_TITLE, text))
    return sections


def detect_chapter_label(
    text: str,
    patterns: Sequence[str] = DEFAULT_CHAPTER_PATTERNS,
    max_heading_length: int = 100,
) -> str | None:
    """Return the first heading-like line among the opening lines, if any."""
    compiled = _compile_patterns(tuple(patterns))
    for line in text.split("\n")[:HEADING_SCAN_LINES]:
        candidate = line.strip()
        if candidate and _is_heading(candidate, compiled, max_heading_length):
            return candidate
    return None


def page_label(page_number: int) -> str:
    """Synthetic chapter label for chunks without a detected heading."""
    return f"Page {page_number}"


def _is_heading(line: str, compiled: Sequence[re.Pattern[str]], max_heading_length: int) -> bool:
    if len(line) >= max_heading_length:
        return False
    return any(pattern.match(line) for pattern in compiled)


@lru_cache(maxsize=32)
def _compile_patterns(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


def _build_chunks(pieces: Sequence[Piece], page_number: int, settings: ChunkingSettings) -> list[Chunk]:
    total = len(pieces)
    chunks: list[Chunk] = []
    for index, piece in enumerate(pieces):
        chapter = piece.chapter
        if chapter is None:
            chapter = detect_chapter_label(
                piece.text,
                settings.chapter_patterns,
                settings.max_heading_length,
            ) or page_label(page_number)
        chunks.append(
            Chunk(
                id=chunk_id(page_number, index),
                text=piece.text,
                page_number=page_number,
                chunk_index=index,
                total_chunks=total,
                chapter=chapter,
                metadata={
                    "character_count": len(piece.text),
                    "word_count": word_count(piece.text),
                    "overlap_chars": piece.overlap,
                    "strategy": settings.strategy.value,
                },
            )
        )
    return chunks


__all__ = [
    "ChunkingSettings",
    "ChunkingStrategy",
    "Piece",
    "DEFAULT_CHAPTER_PATTERNS",
    "chunk_pages",
    "chunk_text",
    "detect_chapter_label",
    "merge_small_pieces",
    "page_label",
    "split_into_chapters",
    "split_sentences",
]
