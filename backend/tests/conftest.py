"""Test fixtures for PDF Knowledge."""

from __future__ import annotations

import os
import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from pdf_knowledge.clients.openai import GenerationResult  # noqa: E402


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeGenerator:
    """Generation backend returning queued or fixed responses."""

    def __init__(self, text: str = "stub answer", configured: bool = True, tokens: int = 7) -> None:
        self.text = text
        self.configured = configured
        self.tokens = tokens
        self.fail_with: Exception | None = None
        self.success = True
        self.calls: list[dict[str, object]] = []
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return self.configured

    def complete(self, prompt, system_prompt=None, temperature=0.7, max_tokens=1000) -> GenerationResult:
        with self._lock:
            self.calls.append(
                {"prompt": prompt, "system_prompt": system_prompt, "temperature": temperature, "max_tokens": max_tokens}
            )
        if self.fail_with is not None:
            raise self.fail_with
        if not self.success:
            return GenerationResult(text="", tokens_used=0, model="fake", success=False, error_message="backend down")
        return GenerationResult(text=self.text, tokens_used=self.tokens, model="fake")


class KeywordEmbedder:
    """Embedding backend that counts a fixed vocabulary in the text."""

    def __init__(self, vocabulary: list[str], configured: bool = True) -> None:
        self.vocabulary = vocabulary
        self.configured = configured
        self.fail_on: set[str] = set()
        self.calls = 0

    def is_configured(self) -> bool:
        return self.configured

    def embed(self, text: str) -> list[float] | None:
        self.calls += 1
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError("embedding service unavailable")
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.vocabulary] + [0.1]


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    for key in list(os.environ):
        if key.startswith("PDFKB_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PDFKB_CONFIG", str(tmp_path / "missing.yaml"))

    from pdf_knowledge.api import dependencies as deps
    from pdf_knowledge.core.config import get_settings

    def _clear() -> None:
        get_settings.cache_clear()
        deps.get_app_settings.cache_clear()
        deps._CLIENT = None
        deps._CACHE = None
        deps._VECTORIZER = None
        deps._SESSION_SERVICE = None
        deps._PIPELINE = None

    _clear()
    yield
    _clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture(scope="session")
def sample_text() -> str:
    return (
        "Contracts are agreements that the law will enforce. "
        "Each contract needs an offer and an acceptance. "
        "Consideration is something of value exchanged between the parties. "
        "Without consideration most promises are not binding. "
        "Courts look at what the parties intended when they signed."
    )


@pytest.fixture
def make_pdf():
    """Build a small PDF with one text block per page."""
    fitz = pytest.importorskip("fitz")

    def _make(pages: list[str]) -> bytes:
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=10)
        data = doc.tobytes()
        doc.close()
        return data

    return _make
