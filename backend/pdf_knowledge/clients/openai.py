"""OpenAI-compatible chat and embedding client."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from pdf_knowledge.core.config import Settings
from pdf_knowledge.core.errors import GenerationError
from pdf_knowledge.core.logging import get_logger, log_context
from pdf_knowledge.utils.time import elapsed_ms

logger = get_logger(__name__)

MOCK_TOKENS = 50
MOCK_ANSWER = "This is a mock response. Configure an API key to get real answers. Question received: {prompt}"


@dataclass(slots=True)
class GenerationResult:
    text: str
    tokens_used: int
    model: str
    success: bool = True
    error_message: str | None = None
    processing_ms: float = 0.0


class GenerationBackend(Protocol):
    def is_configured(self) -> bool: ...

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> GenerationResult: ...


class EmbeddingBackend(Protocol):
    def is_configured(self) -> bool: ...

    def embed(self, text: str) -> list[float] | None: ...


class OpenAIClient:
    """Talks to ``/chat/completions`` and ``/embeddings`` over HTTP.

    Without an API key the client stays usable: ``complete`` answers with a
    canned mock response and ``embed`` returns ``None`` so callers use their
    local fallback.
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self._http = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.settings.openai_api_key)

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> GenerationResult:
        started = time.perf_counter()
        if not self.is_configured():
            logger.warning("API key not configured, returning mock response", extra=log_context(operation="complete"))
            return GenerationResult(
                text=MOCK_ANSWER.format(prompt=prompt[:200]),
                tokens_used=MOCK_TOKENS,
                model=f"{self.settings.chat_model} (mock)",
                processing_ms=elapsed_ms(started),
            )
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.settings.chat_model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            data = self._post("/chat/completions", payload)
            text = _extract_message(data)
        except GenerationError as exc:
            logger.error("Chat completion failed: %s", exc, extra=log_context(operation="complete"))
            return GenerationResult(
                text="",
                tokens_used=0,
                model=self.settings.chat_model,
                success=False,
                error_message=str(exc),
                processing_ms=elapsed_ms(started),
            )
        usage = data.get("usage") or {}
        return GenerationResult(
            text=text,
            tokens_used=int(usage.get("total_tokens") or 0),
            model=str(data.get("model") or self.settings.chat_model),
            processing_ms=elapsed_ms(started),
        )

    def embed(self, text: str) -> list[float] | None:
        if not self.is_configured():
            return None
        data = self._post("/embeddings", {"model": self.settings.embedding_model, "input": text})
        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError("Malformed embedding response") from exc
        if not isinstance(vector, list) or not vector:
            raise GenerationError("Empty embedding response")
        return [float(value) for value in vector]

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = self.settings.openai_base_url.rstrip("/") + path
        try:
            response = self._http.post(
                url,
                headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
                json=payload,
                timeout=self.settings.http_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise GenerationError(f"Request to {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise GenerationError(
                f"{path} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError(f"{path} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise GenerationError(f"{path} returned an unexpected payload")
        return data


def _extract_message(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenerationError("Malformed chat completion response") from exc
    return str(content or "").strip()


__all__ = ["OpenAIClient", "GenerationResult", "GenerationBackend", "EmbeddingBackend"]
