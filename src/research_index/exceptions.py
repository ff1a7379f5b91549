"""Custom exceptions for research_index."""
from __future__ import annotations

from typing import Any


class ResearchIndexError(Exception):
    """Base exception for research_index.

    Every error carries a machine-readable ``kind`` and a ``retryable`` flag so
    callers can decide between failing a job and pausing to retry.
    """

    kind = "INTERNAL_ERROR"
    retryable = False

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a JSON-serializable dict."""
        return {
            "error": self.kind,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(ResearchIndexError):
    """Malformed input rejected locally; never retried."""

    kind = "VALIDATION_ERROR"


class EmptyDocumentError(ValidationError):
    """Raised when a document produces no chunks."""

    kind = "EMPTY_DOCUMENT"


class ServiceUnavailableError(ResearchIndexError):
    """The embedding provider or the vector store cannot be reached."""

    kind = "SERVICE_UNAVAILABLE"
    retryable = True
    suggested_action = "pause_and_retry"

    def __init__(self, message: str = "Service unavailable", service: str = "unknown"):
        self.service = service
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["service"] = self.service
        data["suggested_action"] = self.suggested_action
        return data


class EmbeddingError(ResearchIndexError):
    """Embedding generation errors."""

    kind = "EMBEDDING_ERROR"


class VectorStoreError(ResearchIndexError):
    """Vector store errors that are not transient."""

    kind = "VECTOR_STORE_ERROR"


class IngestionError(ResearchIndexError):
    """Ingestion-related errors."""

    kind = "INGESTION_ERROR"


class ConfigError(ResearchIndexError):
    """Configuration errors."""

    kind = "CONFIG_ERROR"
