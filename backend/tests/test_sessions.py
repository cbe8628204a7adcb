"""Tests for the session store and knowledge base service."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import orjson
import pytest

from conftest import FakeClock, FakeGenerator, KeywordEmbedder
from pdf_knowledge.core.config import Settings
from pdf_knowledge.core.errors import InputError, SessionNotFoundError
from pdf_knowledge.ingest.chunker import chunk_pages
from pdf_knowledge.ingest.embeddings import Vectorizer
from pdf_knowledge.ingest.types import Chunk
from pdf_knowledge.models.entities import QueryStats
from pdf_knowledge.retrieval.search import RetrievalRanker
from pdf_knowledge.sessions.cache import SessionCache
from pdf_knowledge.sessions.service import KnowledgeSessionService


def _service(clock: FakeClock, generator: FakeGenerator, vectorizer: Vectorizer | None = None) -> KnowledgeSessionService:
    settings = Settings()
    ranker = RetrievalRanker(vectorizer or Vectorizer(), settings.min_vector_coverage)
    return KnowledgeSessionService(settings, SessionCache(clock), ranker, generator)


def _chunk(index: int, text: str, page: int = 1, chapter: str | None = None) -> Chunk:
    return Chunk(
        id=f"page_{page}_chunk_{index}",
        text=text,
        page_number=page,
        chunk_index=index,
        total_chunks=1,
        chapter=chapter or f"Page {page}",
    )


def _create(service: KnowledgeSessionService, chunks: list[Chunk], minutes: int = 30) -> str:
    return service.create(
        chunks,
        file_name="contracts.pdf",
        file_size=2048,
        page_count=2,
        character_count=sum(len(c.text) for c in chunks),
        ttl=timedelta(minutes=minutes),
    )


@pytest.fixture
def study_chunks() -> list[Chunk]:
    return [
        _chunk(0, "Chapter 1: Formation. An offer must be communicated clearly to the other party.", 1, "Chapter 1: Formation"),
        _chunk(1, "Acceptance mirrors the offer exactly and must be unconditional in every respect.", 1, "Chapter 1: Formation"),
        _chunk(0, "Consideration is what each party gives up in exchange for the promise.", 2, "Chapter 2: Consideration"),
        _chunk(0, "Remedies for breach include damages and specific performance in rare cases.", 3, "Page 3"),
    ]


def test_create_then_get_info(clock: FakeClock, generator: FakeGenerator, sample_text: str) -> None:
    service = _service(clock, generator)
    pages = {1: f"Chapter 1: Introduction\n{sample_text}", 2: sample_text * 3}
    chunks = chunk_pages(pages, service.settings.chunking_settings())
    session_id = service.create(
        chunks,
        file_name="contracts.pdf",
        file_size=4096,
        page_count=len(pages),
        character_count=sum(len(text) for text in pages.values()),
        ttl=timedelta(minutes=45),
    )
    info = service.get_info(session_id)
    assert info.session_id == session_id
    assert info.chunk_count == len(chunks)
    assert info.expires_at == clock() + timedelta(minutes=45)
    assert info.created_at == clock()
    assert info.embeddings_generated is False
    assert info.query_stats == QueryStats()


def test_default_ttl_comes_from_settings(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    session_id = service.create([_chunk(0, "text")], "a.pdf", 1, 1, 4)
    assert service.get_info(session_id).expires_at == clock() + timedelta(minutes=120)


def test_create_rejects_non_positive_ttl(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    with pytest.raises(InputError):
        _create(service, [_chunk(0, "text")], minutes=0)


def test_embeddings_generated_requires_every_chunk(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    full = [_chunk(0, "a"), _chunk(1, "b")]
    for chunk in full:
        chunk.embedding = [1.0, 0.0]
    partial = [_chunk(0, "a"), _chunk(1, "b")]
    partial[0].embedding = [1.0, 0.0]
    assert service.get_info(_create(service, full)).embeddings_generated is True
    assert service.get_info(_create(service, partial)).embeddings_generated is False
    assert service.get_info(_create(service, [])).embeddings_generated is False


def test_extend_moves_expiry_by_exact_amount(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    session_id = _create(service, [_chunk(0, "text")])
    before = service.get_info(session_id).expires_at
    assert service.extend(session_id, timedelta(minutes=15)) is True
    assert service.get_info(session_id).expires_at == before + timedelta(minutes=15)


def test_extend_rejects_unknown_deleted_expired_and_non_positive(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    assert service.extend("missing", timedelta(minutes=5)) is False

    live = _create(service, [_chunk(0, "text")])
    before = service.get_info(live).expires_at
    assert service.extend(live, timedelta(0)) is False
    assert service.extend(live, timedelta(minutes=-5)) is False
    assert service.get_info(live).expires_at == before

    deleted = _create(service, [_chunk(0, "text")])
    service.delete(deleted)
    assert service.extend(deleted, timedelta(minutes=5)) is False

    expiring = _create(service, [_chunk(0, "text")], minutes=1)
    clock.advance(minutes=2)
    assert service.extend(expiring, timedelta(minutes=60)) is False
    with pytest.raises(SessionNotFoundError):
        service.get_info(expiring)


def test_delete_is_idempotent(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    session_id = _create(service, [_chunk(0, "text")])
    assert service.delete(session_id) is True
    with pytest.raises(SessionNotFoundError):
        service.get_info(session_id)
    assert service.delete(session_id) is True
    assert service.delete("never-existed") is True


def test_expired_session_is_not_found(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks, minutes=30)
    clock.advance(minutes=30)
    with pytest.raises(SessionNotFoundError) as excinfo:
        service.query(session_id, "what is consideration")
    assert excinfo.value.session_id == session_id
    assert generator.calls == []
    assert service.list_active() == []


def test_query_returns_answer_and_provenance(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    long_text = "Consideration " + "x" * 300
    session_id = _create(service, [_chunk(0, long_text), _chunk(1, "Unrelated remedies text.")])
    expires_before = service.get_info(session_id).expires_at

    result = service.query(session_id, "consideration", max_chunks=1, temperature=0.4)
    assert result.success is True
    assert result.answer == "stub answer"
    assert result.tokens_used == 7
    assert result.model == "fake"
    assert result.executed_at == clock()
    assert [ref.chunk_id for ref in result.relevant_chunks] == ["page_1_chunk_0"]
    assert result.relevant_chunks[0].text == long_text[:200] + "..."
    assert result.relevant_chunks[0].similarity_score == 1.0

    call = generator.calls[0]
    assert call["max_tokens"] == 1000
    assert call["temperature"] == 0.4
    assert "Question: consideration" in call["prompt"]
    assert long_text in call["prompt"]

    info = service.get_info(session_id)
    assert info.query_stats.total_queries == 1
    assert info.query_stats.total_tokens_used == 7
    assert info.query_stats.last_query_at == clock()
    assert info.expires_at == expires_before


def test_query_without_matches_uses_first_chunks(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    result = service.query(session_id, "zebra quantum")
    assert result.retrieval_path == "first_chunks"
    assert [ref.chunk_id for ref in result.relevant_chunks] == [study_chunks[0].id, study_chunks[1].id]


def test_query_uses_vectors_when_available(clock: FakeClock, generator: FakeGenerator) -> None:
    backend = KeywordEmbedder(["offer", "breach"])
    service = _service(clock, generator, Vectorizer(backend))
    chunks = [_chunk(0, "offer offer offer"), _chunk(1, "breach breach breach")]
    for chunk in chunks:
        chunk.embedding = backend.embed(chunk.text)
    session_id = _create(service, chunks)
    result = service.query(session_id, "tell me about breach", max_chunks=1)
    assert result.retrieval_path == "vector"
    assert result.relevant_chunks[0].chunk_id == "page_1_chunk_1"


def test_query_generation_failure_keeps_session(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    generator.success = False
    result = service.query(session_id, "what is consideration")
    assert result.success is False
    assert result.error_message == "backend down"

    generator.success = True
    generator.fail_with = RuntimeError("connection reset")
    result = service.query(session_id, "what is consideration")
    assert result.success is False
    assert "connection reset" in (result.error_message or "")

    info = service.get_info(session_id)
    assert info.chunk_count == len(study_chunks)
    assert info.query_stats.total_queries == 2


def test_query_rejects_blank_question(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    session_id = _create(service, [_chunk(0, "text")])
    with pytest.raises(InputError):
        service.query(session_id, "   ")


def test_concurrent_queries_count_every_call(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    total = 40
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: service.query(session_id, "what is consideration"), range(total)))
    assert all(result.success for result in results)
    stats = service.get_info(session_id).query_stats
    assert stats.total_queries == total
    assert stats.total_tokens_used == total * generator.tokens


def test_running_average_formula() -> None:
    stats = QueryStats()
    at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    stats.record(100.0, 10, at)
    stats.record(200.0, 5, at)
    assert stats.average_response_ms == 150.0
    stats.record(0.0, 0, at)
    assert stats.average_response_ms == 100.0
    assert stats.total_queries == 3
    assert stats.total_tokens_used == 15


def test_list_active_skips_expired(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    short = _create(service, [_chunk(0, "a")], minutes=5)
    clock.advance(minutes=1)
    long = _create(service, [_chunk(0, "b")], minutes=60)
    assert [s.session_id for s in service.list_active()] == [short, long]
    clock.advance(minutes=10)
    assert [s.session_id for s in service.list_active()] == [long]
    assert len(service.cache) == 1


def test_cache_reap_expired(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    for _ in range(3):
        _create(service, [_chunk(0, "a")], minutes=1)
    keep = _create(service, [_chunk(0, "b")], minutes=10)
    clock.advance(minutes=2)
    assert service.cache.reap_expired() == 3
    assert [s.session_id for s in service.list_active()] == [keep]


def test_extend_loses_to_concurrent_delete(clock: FakeClock, generator: FakeGenerator, monkeypatch: pytest.MonkeyPatch) -> None:
    service = _service(clock, generator)
    session_id = _create(service, [_chunk(0, "a")])
    cache = service.cache
    lookup = cache._live_record

    def lookup_then_delete(key: str):
        record = lookup(key)
        cache.delete(key)
        return record

    monkeypatch.setattr(cache, "_live_record", lookup_then_delete)
    assert service.extend(session_id, timedelta(minutes=30)) is False
    assert cache.update(session_id, lambda session: None) is None
    assert len(cache) == 0


def test_snapshots_do_not_leak_mutations(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    session_id = _create(service, [_chunk(0, "a")])
    snapshot = service.get_info(session_id)
    snapshot.query_stats.total_queries = 99
    snapshot.expires_at = clock() + timedelta(days=30)
    info = service.get_info(session_id)
    assert info.query_stats.total_queries == 0
    assert info.expires_at == clock() + timedelta(minutes=30)


# Study aids -----------------------------------------------------------


def test_quiz_parses_fenced_json(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    payload = [
        {
            "question": "What must an offer be?",
            "options": ["Communicated", "Secret", "Oral", "Written"],
            "correctAnswer": "Communicated",
            "explanation": "Offers must be communicated.",
            "chapter": "Chapter 1",
            "difficulty": "easy",
        }
    ]
    generator.text = "```json\n" + orjson.dumps(payload).decode("utf-8") + "\n```"
    questions = service.generate_quiz(session_id, count=1, difficulty="easy")
    assert len(questions) == 1
    assert questions[0].correct_answer == "Communicated"
    assert "difficulty level of easy" in generator.calls[0]["prompt"]


def test_quiz_falls_back_to_placeholders(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    generator.text = "Sorry, I cannot produce JSON today."
    questions = service.generate_quiz(session_id, count=4)
    assert len(questions) == 4
    assert questions[0].question == "Sample question 1 about the document content?"
    assert questions[0].correct_answer in questions[0].options

    generator.fail_with = RuntimeError("timeout")
    assert len(service.generate_quiz(session_id, count=2)) == 2


def test_quiz_context_is_bounded(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    chunks = [_chunk(i, f"marker-{i:02d} content") for i in range(15)]
    session_id = _create(service, chunks)
    service.generate_quiz(session_id, count=1)
    prompt = generator.calls[0]["prompt"]
    assert "marker-09" in prompt
    assert "marker-10" not in prompt


def test_flashcards_parse_and_fallback(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    generator.text = orjson.dumps([{"front": "Offer", "back": "A proposal", "chapter": "Chapter 1", "context": "Formation"}]).decode()
    cards = service.generate_flashcards(session_id, count=3)
    assert [card.front for card in cards] == ["Offer"]

    generator.text = "```\nnot json\n```"
    cards = service.generate_flashcards(session_id, count=3)
    assert [card.front for card in cards] == ["Term 1", "Term 2", "Term 3"]


def test_study_features_require_session(clock: FakeClock, generator: FakeGenerator) -> None:
    service = _service(clock, generator)
    with pytest.raises(SessionNotFoundError):
        service.generate_quiz("missing")
    with pytest.raises(SessionNotFoundError):
        service.generate_flashcards("missing")
    with pytest.raises(SessionNotFoundError):
        service.summarize_chapter("missing", "Chapter 1")
    assert service.get_chapter_content("missing", "Chapter 1") == []


def test_chapter_content_matches_case_insensitively(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    matched = service.get_chapter_content(session_id, "chapter 1")
    assert [chunk.text for chunk in matched] == [study_chunks[0].text, study_chunks[1].text]
    assert service.get_chapter_content(session_id, "appendix") == []


def test_summary_without_backend_is_extractive(clock: FakeClock, study_chunks: list[Chunk]) -> None:
    generator = FakeGenerator(configured=False)
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    summary = service.summarize_chapter(session_id, "Chapter 1")
    assert summary.startswith("Summary of Chapter 1:")
    assert "Key concepts:" in summary
    assert generator.calls == []

    short = service.summarize_chapter(session_id, "Chapter 1", max_words=10)
    assert len(short) == 60
    assert short.endswith("...")


def test_summary_uses_backend_and_falls_back_on_failure(clock: FakeClock, generator: FakeGenerator, study_chunks: list[Chunk]) -> None:
    service = _service(clock, generator)
    session_id = _create(service, study_chunks)
    generator.text = "  A concise generated summary.  "
    assert service.summarize_chapter(session_id, "consideration") == "A concise generated summary."
    assert "Chapter: consideration" in generator.calls[0]["prompt"]

    generator.success = False
    assert service.summarize_chapter(session_id, "consideration").startswith("Summary of consideration:")


def test_summary_page_number_retry_and_missing_content(clock: FakeClock, study_chunks: list[Chunk]) -> None:
    service = _service(clock, FakeGenerator(configured=False))
    session_id = _create(service, study_chunks)
    by_page = service.summarize_chapter(session_id, "3")
    assert by_page.startswith("Summary of 3:")
    assert "Remedies for breach" in by_page
    assert service.summarize_chapter(session_id, "9") == "No content found for page 9."
    assert service.summarize_chapter(session_id, "Appendix").startswith("No content found for chapter 'Appendix'")
