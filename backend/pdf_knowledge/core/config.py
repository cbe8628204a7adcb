"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from pdf_knowledge.ingest.chunker import DEFAULT_CHAPTER_PATTERNS, ChunkingSettings, ChunkingStrategy

ENV_PREFIX = "PDFKB_"
DEFAULT_CONFIG_PATH = Path("~/.config/pdf-knowledge/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("generation", "api_key"): "openai_api_key",
    ("generation", "base_url"): "openai_base_url",
    ("generation", "model"): "chat_model",
    ("generation", "timeout_seconds"): "http_timeout_seconds",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "min_coverage"): "min_vector_coverage",
    ("sessions", "ttl_minutes"): "session_ttl_minutes",
    ("sessions", "max_file_size_mb"): "max_file_size_mb",
    ("chunking", "strategy"): "chunk_strategy",
    ("chunking", "max_size"): "chunk_max_size",
    ("chunking", "min_size"): "chunk_min_size",
    ("chunking", "overlap"): "chunk_overlap",
    ("chunking", "merge_small"): "chunk_merge_small",
    ("chunking", "chapter_patterns"): "chapter_patterns",
    ("retrieval", "max_chunks"): "default_max_chunks",
    ("retrieval", "fallback_chunks"): "fallback_chunk_count",
    ("study", "context_chunks"): "study_context_chunks",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-3.5-turbo"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dim: int = Field(default=1536, gt=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    session_ttl_minutes: int = Field(default=120, gt=0)
    max_file_size_mb: int = Field(default=50, gt=0)
    chunk_strategy: ChunkingStrategy = ChunkingStrategy.SENTENCE_BASED
    chunk_max_size: int = Field(default=1000, gt=0)
    chunk_min_size: int = Field(default=100, ge=0)
    chunk_overlap: int = Field(default=200, ge=0)
    chunk_merge_small: bool = True
    chapter_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_CHAPTER_PATTERNS))
    default_max_chunks: int = Field(default=3, ge=1)
    fallback_chunk_count: int = Field(default=2, ge=0)
    min_vector_coverage: float = Field(default=0.5, ge=0.0, le=1.0)
    study_context_chunks: int = Field(default=10, ge=1)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("chapter_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        # env vars carry patterns as a ';;'-separated string
        if isinstance(value, str):
            return [item for item in value.split(";;") if item.strip()]
        return value

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def chunking_settings(self) -> ChunkingSettings:
        """Build chunker settings from the flat configuration fields."""
        return ChunkingSettings(
            max_chunk_size=self.chunk_max_size,
            min_chunk_size=self.chunk_min_size,
            overlap_size=self.chunk_overlap,
            strategy=self.chunk_strategy,
            chapter_patterns=list(self.chapter_patterns),
            merge_small_chunks=self.chunk_merge_small,
        )

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with PDFKB_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
