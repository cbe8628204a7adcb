"""PDF text extraction."""

from __future__ import annotations

import time

try:
    import fitz  # type: ignore[attr-defined]
except Exception:  # pragma: no cover - optional dependency
    fitz = None

from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.ingest.types import ExtractionResult
from pdf_knowledge.utils.time import elapsed_ms

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"


def looks_like_pdf(data: bytes) -> bool:
    return data[: len(PDF_MAGIC)] == PDF_MAGIC


class PdfTextExtractor:
    """Extracts per-page text from PDF bytes with PyMuPDF.

    Failures are reported through ``ExtractionResult.success`` rather than
    raised, so callers decide how to surface them.
    """

    mime_type = "application/pdf"

    def __init__(self, max_file_size_bytes: int = 0) -> None:
        self.max_file_size_bytes = max_file_size_bytes

    def extract(self, data: bytes, file_name: str = "document.pdf") -> ExtractionResult:
        started = time.perf_counter()
        if self.max_file_size_bytes and len(data) > self.max_file_size_bytes:
            return ExtractionResult.failed(
                f"File size ({len(data)} bytes) exceeds maximum allowed size ({self.max_file_size_bytes} bytes)",
                elapsed_ms(started),
            )
        if not looks_like_pdf(data):
            return ExtractionResult.failed("Invalid PDF file", elapsed_ms(started))
        if fitz is None:
            raise RuntimeError("PyMuPDF is required to load PDF files")
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = {index: page.get_text("text", sort=True) for index, page in enumerate(doc, start=1)}
                info = dict(doc.metadata or {})
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Error extracting text from PDF %s: %s",
                file_name,
                exc,
                extra=log_context(operation="extract", file_name=file_name),
            )
            return ExtractionResult.failed(str(exc) or "Unreadable PDF", elapsed_ms(started))
        if not pages:
            return ExtractionResult.failed("PDF contains no pages", elapsed_ms(started))
        result =ExtractionResult(
            pages=pages,
            page_count=len(pages),
            success=True,
            processing_ms=elapsed_ms(started),
            metadata={
                "title": info.get("title") or None,
                "author": info.get("author") or None,
                "producer": info.get("producer") or None,
                "file_name": file_name,
            },
        )
        logger.info(
            "Extracted %s pages (%s characters) from %s",
            result.page_count,
            result.character_count,
            file_name,
            extra=log_context(operation="extract", file_name=file_name),
        )
        return result


__all__ = ["PdfTextExtractor", "looks_like_pdf"]
