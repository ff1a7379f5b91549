"""Domain entities for research_index."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# Payload keys written by the ingestion pipeline itself.
SYSTEM_PAYLOAD_KEYS = frozenset(
    {"text", "document_id", "chunk_index", "total_chunks", "ingested_at"}
)

METADATA_FIELDS = (
    "source",
    "title",
    "author",
    "document_type",
    "domain_id",
    "topic_id",
    "created_at",
    "tags",
    "language",
)

RESERVED_PAYLOAD_KEYS = SYSTEM_PAYLOAD_KEYS | frozenset(METADATA_FIELDS)

DEFAULT_LANGUAGE = "en"


class DocumentMetadata(BaseModel):
    """Metadata attached to a document and inherited by each of its chunks.

    Known fields are typed; anything else goes into ``extra`` so new payload
    fields survive a round trip through the store.
    """

    source: str | None = None
    title: str | None = None
    author: str | None = None
    document_type: str | None = None
    domain_id: str | None = None
    topic_id: str | None = None
    created_at: str | None = None
    tags: list[str] = Field(default_factory=list)
    language: str = DEFAULT_LANGUAGE
    extra: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def to_payload(self) -> dict[str, Any]:
        """Flatten into store payload fields, omitting unset values."""
        payload: dict[str, Any] = {
            key: value
            for key, value in self.extra.items()
            if key not in RESERVED_PAYLOAD_KEYS
        }
        for name in METADATA_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if name == "tags" and not value:
                continue
            payload[name] = list(value) if name == "tags" else value
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DocumentMetadata:
        """Rebuild metadata from a stored payload."""
        # Other writers may store non-string scalars (e.g. an integer domain_id).
        known: dict[str, Any] = {}
        for name in METADATA_FIELDS:
            value = payload.get(name)
            if value is None:
                continue
            if name == "tags":
                tags = value if isinstance(value, list) else [value]
                known[name] = [str(tag) for tag in tags if tag is not None]
            else:
                known[name] = str(value)
        if not known.get("language"):
            known["language"] = DEFAULT_LANGUAGE
        extra = {
            key: value
            for key, value in payload.items()
            if key not in RESERVED_PAYLOAD_KEYS
        }
        return cls(**known, extra=extra)

    def merged_with(self, **updates: Any) -> DocumentMetadata:
        """Return a copy with ``updates`` applied to fields that are still unset."""
        fill = {
            key: value
            for key, value in updates.items()
            if value is not None and getattr(self, key) in (None, [])
        }
        if not fill:
            return self
        return self.model_copy(update=fill)


class Chunk(BaseModel):
    """A bounded slice of a source document, the unit of embedding and storage.

    ``start_offset``/``end_offset`` locate the untrimmed span in the source
    text; ``text`` is that span with surrounding whitespace removed.
    """

    text: str
    ordinal: int
    total_chunks: int
    start_offset: int
    end_offset: int
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    model_config = {"frozen": True}


class StoredPoint(BaseModel):
    """One vector plus payload, as written to the store."""

    id: str
    vector: list[float]
    payload: dict[str, Any]

    model_config = {"frozen": True}

    @classmethod
    def from_chunk(
        cls,
        point_id: str,
        chunk: Chunk,
        vector: list[float],
        document_id: str,
        ingested_at: datetime,
    ) -> StoredPoint:
        payload = chunk.metadata.to_payload()
        payload.update(
            {
                "text": chunk.text,
                "document_id": document_id,
                "chunk_index": chunk.ordinal,
                "total_chunks": chunk.total_chunks,
                "ingested_at": ingested_at.isoformat(),
            }
        )
        return cls(id=point_id, vector=list(vector), payload=payload)


class SearchFilter(BaseModel):
    """Equality constraints on stored metadata. Tags must all be present."""

    source: str | None = None
    document_type: str | None = None
    domain_id: str | None = None
    topic_id: str | None = None
    tags: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            (self.source, self.document_type, self.domain_id, self.topic_id, self.tags)
        )


class SearchResult(BaseModel):
    """Represents a search result."""

    id: str
    text: str
    score: float
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    document_id: str | None = None
    chunk_index: int | None = None
    total_chunks: int | None = None
    ingested_at: str | None = None

    @classmethod
    def from_payload(cls, point_id: str, payload: dict[str, Any], score: float) -> SearchResult:
        return cls(
            id=point_id,
            text=str(payload.get("text") or ""),
            score=score,
            **_payload_links(payload),
        )


class HybridResult(SearchResult):
    """Search result carrying both retrieval signals and the fused score."""

    vector_score: float = 0.0
    keyword_score: float = 0.0

    @classmethod
    def from_payload(
        cls,
        point_id: str,
        payload: dict[str, Any],
        score: float = 0.0,
        *,
        vector_score: float = 0.0,
        keyword_score: float = 0.0,
    ) -> HybridResult:
        return cls(
            id=point_id,
            text=str(payload.get("text") or ""),
            score=score,
            vector_score=vector_score,
            keyword_score=keyword_score,
            **_payload_links(payload),
        )


class IngestionResult(BaseModel):
    """Outcome of ingesting one document."""

    document_id: str
    chunks_created: int
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


class StoreHealth(BaseModel):
    """Result of a vector store health probe."""

    available: bool
    collection_exists: bool = False
    document_count: int = 0
    last_check: datetime
    error: str | None = None

    @property
    def status(self) -> str:
        return "healthy" if self.available else "unavailable"


class StoredDocument(BaseModel):
    """A stored chunk returned by lookup or browse."""

    id: str
    text: str
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    document_id: str | None = None
    chunk_index: int | None = None
    total_chunks: int | None = None
    ingested_at: str | None = None

    @classmethod
    def from_payload(cls, point_id: str, payload: dict[str, Any]) -> StoredDocument:
        return cls(
            id=point_id,
            text=str(payload.get("text") or ""),
            **_payload_links(payload),
        )


class BrowsePage(BaseModel):
    """One page of stored chunks."""

    documents: list[StoredDocument] = Field(default_factory=list)
    next_offset: str | None = None
    total: int = 0


class SourceCount(BaseModel):
    source: str
    count: int


def _payload_links(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "metadata": DocumentMetadata.from_payload(payload),
        "document_id": payload.get("document_id"),
        "chunk_index": payload.get("chunk_index"),
        "total_chunks": payload.get("total_chunks"),
        "ingested_at": payload.get("ingested_at"),
    }
