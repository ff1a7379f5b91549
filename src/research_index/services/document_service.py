"""Document management service for research_index."""
from __future__ import annotations

import logging
import uuid
from collections import Counter

from research_index.exceptions import ValidationError
from research_index.models import (
    BrowsePage,
    SearchFilter,
    SourceCount,
    StoredDocument,
    StoreHealth,
)
from research_index.storage import QdrantStore, build_filter

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "Unknown"


class DocumentService:
    """Inspect and delete stored chunks."""

    def __init__(self, store: QdrantStore):
        self.store = store

    async def delete_by_filter(self, search_filter: SearchFilter | None) -> int:
        """Delete every chunk matching ``search_filter``.

        Raises:
            ValidationError: If the filter is missing or empty, so a mistake
                can never wipe the whole collection.
        """
        native_filter = build_filter(search_filter)
        if native_filter is None:
            raise ValidationError("Filter is required for deletion")
        return await self.store.delete_by_filter(native_filter)

    async def delete_by_source(self, source: str) -> int:
        """Delete all chunks ingested from ``source``."""
        if not source:
            raise ValidationError("Source is required for deletion")
        return await self.delete_by_filter(SearchFilter(source=source))

    async def delete_document(self, point_id: str) -> bool:
        """Delete one chunk by id. Returns False if it does not exist."""
        if await self.get_document(point_id) is None:
            return False
        await self.store.delete_points([_check_point_id(point_id)])
        return True

    async def get_document(self, point_id: str) -> StoredDocument | None:
        """Get one stored chunk by id."""
        hit = await self.store.retrieve(_check_point_id(point_id))
        if hit is None:
            return None
        return StoredDocument.from_payload(hit.id, hit.payload)

    async def browse(
        self,
        limit: int = 20,
        offset: str | None = None,
        search_filter: SearchFilter | None = None,
    ) -> BrowsePage:
        """Page through stored chunks."""
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        native_filter = build_filter(search_filter)
        total = await self.store.count(native_filter)
        hits, next_offset = await self.store.scroll_page(limit, offset, native_filter)
        return BrowsePage(
            documents=[StoredDocument.from_payload(hit.id, hit.payload) for hit in hits],
            next_offset=next_offset,
            total=total,
        )

    async def source_stats(self) -> list[SourceCount]:
        """Chunk counts per source, largest first."""
        counts: Counter[str] = Counter()
        async for source in self.store.iter_payload_field("source"):
            counts[source or UNKNOWN_SOURCE] += 1
        return [
            SourceCount(source=source, count=count)
            for source, count in counts.most_common()
        ]

    async def status(self) -> StoreHealth:
        """Report store availability and collection size."""
        return await self.store.health()

    async def ensure_collection(self, dimension: int | None = None) -> bool:
        """Create the collection if it does not exist yet."""
        return await self.store.ensure_collection(dimension)

    async def close(self) -> None:
        """Close the service."""
        await self.store.close()


def _check_point_id(point_id: str) -> str:
    try:
        return str(uuid.UUID(point_id))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid point id: {point_id!r}") from e
