"""Ingestion service for research_index."""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from research_index.chunking import DEFAULT_PROFILE, ChunkingProfile, RecursiveCharacterSplitter
from research_index.embeddings import BaseEmbedder
from research_index.exceptions import EmbeddingError, EmptyDocumentError, IngestionError
from research_index.models import DocumentMetadata, IngestionResult, StoredPoint
from research_index.storage import QdrantStore

logger = logging.getLogger(__name__)

_MARKDOWN_TITLE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)

_DOCUMENT_TYPES = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
}


class IngestService:
    """Chunk documents, embed the chunks and store them as one batch."""

    def __init__(
        self,
        store: QdrantStore,
        embedder: BaseEmbedder,
        profile: ChunkingProfile = DEFAULT_PROFILE,
    ):
        self.store = store
        self.embedder = embedder
        self.profile = profile

    async def ingest(
        self,
        text: str,
        metadata: DocumentMetadata | None = None,
        *,
        profile: ChunkingProfile | None = None,
    ) -> IngestionResult:
        """Ingest one document.

        All chunks share a fresh document id. Nothing is written until every
        chunk has a vector, and the write is a single upsert that returns once
        the points are queryable.

        Raises:
            EmptyDocumentError: If the text yields no chunks.
            EmbeddingError: If the provider returns the wrong number of vectors.
        """
        metadata = metadata or DocumentMetadata()
        splitter = RecursiveCharacterSplitter.from_profile(profile or self.profile)
        chunks = splitter.split(text, metadata)
        if not chunks:
            raise EmptyDocumentError("No chunks generated from text")

        vectors = await self.embedder.embed_batch([chunk.text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingError(
                f"Expected {len(chunks)} embeddings, got {len(vectors)}"
            )

        document_id = str(uuid.uuid4())
        ingested_at = datetime.now(timezone.utc)
        points = [
            StoredPoint.from_chunk(str(uuid.uuid4()), chunk, vector, document_id, ingested_at)
            for chunk, vector in zip(chunks, vectors)
        ]
        await self.store.upsert(points, wait=True)

        logger.info(
            "Ingested document %s (%d chunks, source=%s)",
            document_id,
            len(chunks),
            metadata.source,
        )
        return IngestionResult(
            document_id=document_id,
            chunks_created=len(chunks),
            metadata=metadata,
        )

    async def ingest_file(
        self,
        file_path: Path,
        metadata: DocumentMetadata | None = None,
        *,
        profile: ChunkingProfile | None = None,
    ) -> IngestionResult:
        """Ingest a UTF-8 text or Markdown file.

        ``source``, ``title`` and ``document_type`` are derived from the file
        unless ``metadata`` already sets them.

        Raises IngestionError if the file cannot be read.
        """
        try:
            text = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise IngestionError(f"Failed to read file {file_path}: {e}") from e
        except UnicodeDecodeError as e:
            raise IngestionError(f"Failed to decode file {file_path}: {e}") from e

        metadata = (metadata or DocumentMetadata()).merged_with(
            source=file_path.name,
            title=extract_title(text, file_path),
            document_type=_document_type(file_path),
        )
        return await self.ingest(text, metadata, profile=profile)

    async def close(self) -> None:
        """Close the service."""
        await self.store.close()


def extract_title(text: str, file_path: Path) -> str:
    """First Markdown ``# `` heading, or the file name without its suffix."""
    match = _MARKDOWN_TITLE.search(text)
    return match.group(1).strip() if match else file_path.stem


def _document_type(file_path: Path) -> str | None:
    suffix = file_path.suffix.lower()
    if not suffix:
        return None
    return _DOCUMENT_TYPES.get(suffix, suffix.lstrip("."))
