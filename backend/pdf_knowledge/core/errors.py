"""Error taxonomy shared by the knowledge base services."""

from __future__ import annotations


class KnowledgeBaseError(Exception):
    """Base class for errors raised at the service boundary."""


class InputError(KnowledgeBaseError, ValueError):
    """Raised for malformed requests rejected before any session work."""


class ExtractionError(KnowledgeBaseError):
    """Raised when text extraction fails; no session is created."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class SessionNotFoundError(KnowledgeBaseError, LookupError):
    """Raised when a session id is unknown, deleted or expired."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Knowledge base session expired or not found: {session_id}")
        self.session_id = session_id


class GenerationError(KnowledgeBaseError):
    """Raised by backend clients when a generation or embedding call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "KnowledgeBaseError",
    "InputError",
    "ExtractionError",
    "SessionNotFoundError",
    "GenerationError",
]
