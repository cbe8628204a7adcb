"""Ingest pipeline orchestration."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping

from pdf_knowledge.core.config import Settings
from pdf_knowledge.core.errors import ExtractionError, InputError
from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.core.metrics import INGEST_DURATION
from pdf_knowledge.ingest.chunker import chunk_pages
from pdf_knowledge.ingest.embeddings import Vectorizer
from pdf_knowledge.ingest.loaders import PdfTextExtractor, looks_like_pdf
from pdf_knowledge.ingest.types import BuildStats, Chunk
from pdf_knowledge.models.entities import ProcessingStats
from pdf_knowledge.sessions.service import KnowledgeSessionService
from pdf_knowledge.utils.time import elapsed_ms, utc_now

logger = get_logger(__name__)


@dataclass(slots=True)
class BuildResult:
    session_id: str
    stats: BuildStats


class IngestPipeline:
    """Coordinate extraction, chunking, embeddings, and session creation."""

    def __init__(
        self,
        settings: Settings,
        service: KnowledgeSessionService,
        vectorizer: Vectorizer,
        extractor: PdfTextExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.service = service
        self.vectorizer = vectorizer
        self.extractor = extractor or PdfTextExtractor(settings.max_file_size_bytes)

    def build(self, data: bytes, file_name: str, ttl: timedelta | None = None) -> BuildResult:
        """Build a knowledge base from uploaded PDF bytes."""
        self._validate_upload(data, file_name, ttl)
        started = time.perf_counter()
        extraction = self.extractor.extract(data, file_name)
        if not extraction.success:
            logger.error(
                "Failed to extract text from %s: %s",
                file_name,
                extraction.error_message,
                extra=log_context(operation="extract", file_name=file_name),
            )
            raise ExtractionError(f"Failed to extract text from PDF: {extraction.error_message}")
        extraction_ms = elapsed_ms(started)
        INGEST_DURATION.labels(stage="extract").observe(extraction_ms / 1000.0)
        return self.build_from_pages(
            extraction.pages,
            file_name=file_name,
            file_size=len(data),
            ttl=ttl,
            extraction_ms=extraction_ms,
            metadata={key: value for key, value in extraction.metadata.items() if value},
        )

    def build_from_pages(
        self,
        pages: Mapping[int, str],
        file_name: str,
        file_size: int = 0,
        ttl: timedelta | None = None,
        extraction_ms: float = 0.0,
        metadata: dict[str, object] | None = None,
    ) -> BuildResult:
        """Build a knowledge base from text already split into pages."""
        if ttl is not None and ttl <= timedelta(0):
            raise InputError("Session duration must be positive")
        stats = BuildStats(text_extraction_ms=extraction_ms)

        started = time.perf_counter()
        chunks = chunk_pages(pages, self.settings.chunking_settings())
        created_at = utc_now().isoformat()
        for chunk in chunks:
            chunk.metadata["created_at"] = created_at
        stats.chunking_ms = elapsed_ms(started)
        stats.chunks = len(chunks)
        INGEST_DURATION.labels(stage="chunk").observe(stats.chunking_ms / 1000.0)

        started = time.perf_counter()
        stats.embedded = self._attach_embeddings(chunks, file_name)
        stats.embedding_ms = elapsed_ms(started)
        INGEST_DURATION.labels(stage="embed").observe(stats.embedding_ms / 1000.0)

        processing = ProcessingStats(
            text_extraction_ms=stats.text_extraction_ms,
            chunking_ms=stats.chunking_ms,
            embedding_ms=stats.embedding_ms,
            total_ms=stats.text_extraction_ms + stats.chunking_ms + stats.embedding_ms,
            success=True,
        )
        session_id = self.service.create(
            chunks,
            file_name=file_name,
            file_size=file_size,
            page_count=len(pages),
            character_count=sum(len(text) for text in pages.values()),
            processing_stats=processing,
            ttl=ttl,
            metadata=metadata,
        )
        logger.info(
            "Built knowledge base from %s pages: %s",
            len(pages),
            stats.to_dict(),
            extra=log_context(session_id=session_id, operation="build", file_name=file_name),
        )
        return BuildResult(session_id=session_id, stats=stats)

    # Internal helpers -------------------------------------------------

    def _validate_upload(self, data: bytes, file_name: str, ttl: timedelta | None) -> None:
        if not data:
            raise InputError("Uploaded file is empty")
        if not file_name.lower().endswith(".pdf") and not looks_like_pdf(data):
            raise InputError("Only PDF files are supported")
        if len(data) > self.settings.max_file_size_bytes:
            raise InputError(f"File exceeds the {self.settings.max_file_size_mb} MB limit")
        if ttl is not None and ttl <= timedelta(0):
            raise InputError("Session duration must be positive")

    def _attach_embeddings(self, chunks: list[Chunk], file_name: str) -> int:
        if not self.vectorizer.is_available():
            return 0
        embedded = 0
        for chunk in chunks:
            chunk.embedding = self.vectorizer.try_embed(chunk.text)
            if chunk.embedding is not None:
                embedded += 1
        if embedded < len(chunks):
            logger.warning(
                "Embedded %s of %s chunks",
                embedded,
                len(chunks),
                extra=log_context(operation="embed", file_name=file_name),
            )
        return embedded


__all__ = ["IngestPipeline", "BuildResult"]
