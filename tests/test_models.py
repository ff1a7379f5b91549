"""Tests for domain models and the error taxonomy."""
from __future__ import annotations

from datetime import datetime, timezone

from research_index.exceptions import (
    EmptyDocumentError,
    ResearchIndexError,
    ServiceUnavailableError,
    ValidationError,
)
from research_index.models import (
    Chunk,
    DocumentMetadata,
    SearchFilter,
    SearchResult,
    StoredPoint,
)


class TestDocumentMetadata:
    """Tests for DocumentMetadata payload conversion."""

    def test_unset_fields_are_omitted(self):
        payload = DocumentMetadata(source="notes.md").to_payload()

        assert payload == {"source": "notes.md", "language": "en"}

    def test_extra_cannot_override_known_fields(self):
        metadata = DocumentMetadata(source="real", extra={"source": "fake", "text": "x", "lab": "a"})

        payload = metadata.to_payload()

        assert payload["source"] == "real"
        assert "text" not in payload
        assert payload["lab"] == "a"

    def test_from_payload_splits_known_and_extra(self):
        metadata = DocumentMetadata.from_payload(
            {
                "text": "chunk",
                "document_id": "doc-1",
                "source": "notes.md",
                "tags": "ml",
                "lab": "a",
            }
        )

        assert metadata.source == "notes.md"
        assert metadata.tags == ["ml"]
        assert metadata.language == "en"
        assert metadata.extra == {"lab": "a"}

    def test_from_payload_coerces_non_string_scalars(self):
        metadata = DocumentMetadata.from_payload(
            {"text": "chunk", "domain_id": 42, "topic_id": 7.5, "tags": [1, "ml", None]}
        )

        assert metadata.domain_id == "42"
        assert metadata.topic_id == "7.5"
        assert metadata.tags == ["1", "ml"]

    def test_result_from_payload_with_integer_fields(self):
        result = SearchResult.from_payload(
            "p1", {"text": "chunk", "source": 123, "domain_id": 9, "chunk_index": 0}, 0.5
        )

        assert result.metadata.source == "123"
        assert result.metadata.domain_id == "9"
        assert result.chunk_index == 0

    def test_merged_with_fills_only_unset_fields(self):
        metadata = DocumentMetadata(title="Mine")

        merged = metadata.merged_with(title="Derived", source="notes.md", author=None)

        assert merged.title == "Mine"
        assert merged.source == "notes.md"
        assert merged.author is None


class TestStoredPoint:
    """Tests for StoredPoint.from_chunk."""

    def test_system_fields_written(self):
        chunk = Chunk(
            text="hello",
            ordinal=1,
            total_chunks=3,
            start_offset=10,
            end_offset=15,
            metadata=DocumentMetadata(source="notes.md", extra={"chunk_index": 99}),
        )
        ingested_at = datetime(2024, 5, 1, tzinfo=timezone.utc)

        point = StoredPoint.from_chunk("p1", chunk, [0.5, 0.5], "doc-1", ingested_at)

        assert point.payload == {
            "source": "notes.md",
            "language": "en",
            "text": "hello",
            "document_id": "doc-1",
            "chunk_index": 1,
            "total_chunks": 3,
            "ingested_at": "2024-05-01T00:00:00+00:00",
        }


class TestSearchModels:
    """Tests for filters and results."""

    def test_filter_emptiness(self):
        assert SearchFilter().is_empty()
        assert not SearchFilter(tags=["ml"]).is_empty()
        assert not SearchFilter(topic_id="t1").is_empty()

    def test_result_from_sparse_payload(self):
        result = SearchResult.from_payload("p1", {}, 0.3)

        assert result.text == ""
        assert result.document_id is None
        assert result.metadata.language == "en"


class TestErrors:
    """Tests for the machine-readable error taxonomy."""

    def test_validation_error_dict(self):
        assert ValidationError("bad limit").to_dict() == {
            "error": "VALIDATION_ERROR",
            "message": "bad limit",
            "retryable": False,
        }

    def test_empty_document_is_validation_error(self):
        error = EmptyDocumentError("no chunks")

        assert isinstance(error, ValidationError)
        assert error.kind == "EMPTY_DOCUMENT"

    def test_service_unavailable_dict(self):
        error = ServiceUnavailableError("Qdrant down", service="vector store")

        assert isinstance(error, ResearchIndexError)
        assert error.to_dict() == {
            "error": "SERVICE_UNAVAILABLE",
            "message": "Qdrant down",
            "retryable": True,
            "service": "vector store",
            "suggested_action": "pause_and_retry",
        }
