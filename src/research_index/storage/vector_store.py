"""Vector store implementation using Qdrant."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from research_index.exceptions import (
    ServiceUnavailableError,
    ValidationError,
    VectorStoreError,
)
from research_index.models import StoredPoint, StoreHealth
from research_index.resilience import call_with_timeout
from research_index.storage.filters import TEXT_FIELD, keyword_filter

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_SERVICE = "vector store"

# Payload fields that get a keyword index for filtering.
KEYWORD_INDEX_FIELDS = (
    "source",
    "document_type",
    "domain_id",
    "topic_id",
    "tags",
    "document_id",
)

# HTTP statuses that mean the store is overloaded or restarting.
_TRANSIENT_STATUS_CODES = {502, 503, 504}


@dataclass(frozen=True)
class StoreHit:
    """One point returned by the store. ``score`` is None for keyword hits."""

    id: str
    payload: dict[str, Any] = field(default_factory=dict)
    score: float | None = None


class QdrantStore:
    """Qdrant implementation of the vector store."""

    DEFAULT_DIMENSION = 384  # bge-small-en-v1.5

    def __init__(
        self,
        url: str,
        collection_name: str,
        api_key: str | None = None,
        dimension: int = DEFAULT_DIMENSION,
        timeout: float | None = None,
        client: AsyncQdrantClient | None = None,
    ):
        self.url = url
        self.collection_name = collection_name
        self.dimension = dimension
        self.timeout = timeout
        self._api_key = api_key
        self._client = client
        self._collection_ready = False
        self._ready_lock = asyncio.Lock()

    def _get_client(self) -> AsyncQdrantClient:
        # Created without awaiting, so concurrent first callers share one client.
        if self._client is None:
            try:
                self._client = AsyncQdrantClient(url=self.url, api_key=self._api_key)
            except Exception as e:
                raise VectorStoreError(f"Invalid Qdrant client settings for {self.url}: {e}") from e
            logger.info("Created Qdrant client for %s", self.url)
        return self._client

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        """Run one store request, mapping failures onto our error taxonomy."""
        try:
            return await call_with_timeout(
                awaitable,
                timeout=self.timeout,
                operation=operation,
                service=STORE_SERVICE,
            )
        except ResponseHandlingException as e:
            # qdrant-client wraps connection failures in this exception
            raise ServiceUnavailableError(
                f"Qdrant unavailable during {operation}: {e}", service=STORE_SERVICE
            ) from e
        except UnexpectedResponse as e:
            if e.status_code in _TRANSIENT_STATUS_CODES:
                raise ServiceUnavailableError(
                    f"Qdrant unavailable during {operation}: {e}", service=STORE_SERVICE
                ) from e
            raise VectorStoreError(f"Qdrant {operation} failed: {e}") from e

    async def ensure_collection(self, dimension: int | None = None) -> bool:
        """Create the collection and its payload indexes if missing.

        Returns:
            True if the collection was created by this call.
        """
        dimension = dimension or self.dimension
        client = self._get_client()
        exists = await self._call(
            client.collection_exists(self.collection_name), "collection check"
        )
        if exists:
            self._collection_ready = True
            return False

        await self._call(
            client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(
                    size=dimension,
                    distance=models.Distance.COSINE,
                ),
            ),
            "create collection",
        )
        for field_name in KEYWORD_INDEX_FIELDS:
            await self._call(
                client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                ),
                "create payload index",
            )
        # Full-text index backing keyword search
        await self._call(
            client.create_payload_index(
                collection_name=self.collection_name,
                field_name=TEXT_FIELD,
                field_schema=models.TextIndexParams(
                    type=models.TextIndexType.TEXT,
                    tokenizer=models.TokenizerType.WORD,
                    min_token_len=2,
                    max_token_len=15,
                    lowercase=True,
                ),
            ),
            "create text index",
        )
        self._collection_ready = True
        logger.info(
            "Created collection %s (dimension=%d)", self.collection_name, dimension
        )
        return True

    async def _ensure_ready(self) -> None:
        if self._collection_ready:
            return
        async with self._ready_lock:
            if not self._collection_ready:
                await self.ensure_collection()

    async def upsert(self, points: list[StoredPoint], wait: bool = True) -> int:
        """Write all ``points`` in one request.

        With ``wait`` the call returns only once the points are queryable.
        """
        if not points:
            return 0
        await self._ensure_ready()
        await self._call(
            self._get_client().upsert(
                collection_name=self.collection_name,
                points=[
                    models.PointStruct(id=point.id, vector=point.vector, payload=point.payload)
                    for point in points
                ],
                wait=wait,
            ),
            "upsert",
        )
        return len(points)

    async def vector_search(
        self,
        vector: list[float],
        native_filter: models.Filter | None = None,
        limit: int = 10,
    ) -> list[StoreHit]:
        """Nearest neighbours of ``vector``, best first."""
        await self._ensure_ready()
        response = await self._call(
            self._get_client().query_points(
                collection_name=self.collection_name,
                query=vector,
                query_filter=native_filter,
                limit=limit,
                with_payload=True,
            ),
            "vector search",
        )
        return [
            StoreHit(id=str(point.id), payload=point.payload or {}, score=point.score)
            for point in response.points
        ]

    async def keyword_scroll(
        self,
        query: str,
        native_filter: models.Filter | None = None,
        limit: int = 10,
    ) -> list[StoreHit]:
        """Points whose text matches ``query``, in the store's own order."""
        await self._ensure_ready()
        points, _ = await self._call(
            self._get_client().scroll(
                collection_name=self.collection_name,
                scroll_filter=keyword_filter(query, native_filter),
                limit=limit,
                with_payload=True,
                with_vectors=False,
            ),
            "keyword scroll",
        )
        return [StoreHit(id=str(point.id), payload=point.payload or {}) for point in points]

    async def count(self, native_filter: models.Filter | None = None) -> int:
        """Return the exact number of points matching ``native_filter``."""
        await self._ensure_ready()
        result = await self._call(
            self._get_client().count(
                collection_name=self.collection_name,
                count_filter=native_filter,
                exact=True,
            ),
            "count",
        )
        return result.count

    async def delete_by_filter(self, native_filter: models.Filter | None) -> int:
        """Delete every point matching ``native_filter``.

        Returns:
            Number of points deleted.

        Raises:
            ValidationError: If no filter is given.
        """
        if native_filter is None or not native_filter.must:
            raise ValidationError("A non-empty filter is required for deletion")

        matched = await self.count(native_filter)
        if matched:
            await self._call(
                self._get_client().delete(
                    collection_name=self.collection_name,
                    points_selector=models.FilterSelector(filter=native_filter),
                    wait=True,
                ),
                "delete",
            )
        logger.info("Deleted %d points from %s", matched, self.collection_name)
        return matched

    async def delete_points(self, point_ids: list[str]) -> int:
        """Delete points by id."""
        if not point_ids:
            return 0
        await self._ensure_ready()
        await self._call(
            self._get_client().delete(
                collection_name=self.collection_name,
                points_selector=models.PointIdsList(points=list(point_ids)),
                wait=True,
            ),
            "delete",
        )
        return len(point_ids)

    async def retrieve(self, point_id: str) -> StoreHit | None:
        """Get a point by id."""
        await self._ensure_ready()
        points = await self._call(
            self._get_client().retrieve(
                collection_name=self.collection_name,
                ids=[point_id],
                with_payload=True,
                with_vectors=False,
            ),
            "retrieve",
        )
        if not points:
            return None
        point = points[0]
        return StoreHit(id=str(point.id), payload=point.payload or {})

    async def scroll_page(
        self,
        limit: int = 20,
        offset: str | None = None,
        native_filter: models.Filter | None = None,
    ) -> tuple[list[StoreHit], str | None]:
        """Return one page of points and the offset of the next page."""
        await self._ensure_ready()
        points, next_offset = await self._call(
            self._get_client().scroll(
                collection_name=self.collection_name,
                scroll_filter=native_filter,
                limit=limit,
                offset=offset,
                with_payload=True,
                with_vectors=False,
            ),
            "scroll",
        )
        hits = [StoreHit(id=str(point.id), payload=point.payload or {}) for point in points]
        return hits, str(next_offset) if next_offset is not None else None

    async def iter_payload_field(
        self,
        field_name: str,
        page_size: int = 1000,
    ) -> AsyncIterator[Any]:
        """Yield ``field_name`` from every point's payload (None when absent)."""
        await self._ensure_ready()
        offset = None
        while True:
            points, offset = await self._call(
                self._get_client().scroll(
                    collection_name=self.collection_name,
                    limit=page_size,
                    offset=offset,
                    with_payload=models.PayloadSelectorInclude(include=[field_name]),
                    with_vectors=False,
                ),
                "scroll",
            )
            for point in points:
                yield (point.payload or {}).get(field_name)
            if offset is None:
                break

    async def health(self) -> StoreHealth:
        """Probe the store. Never raises; failures are reported in the result."""
        checked_at = datetime.now(timezone.utc)
        try:
            client = self._get_client()
            exists = await self._call(
                client.collection_exists(self.collection_name), "health check"
            )
            document_count = 0
            if exists:
                info = await self._call(
                    client.get_collection(self.collection_name), "health check"
                )
                document_count = info.points_count or 0
        except (ServiceUnavailableError, VectorStoreError) as e:
            logger.warning("Vector store health check failed: %s", e)
            return StoreHealth(available=False, last_check=checked_at, error=str(e))

        return StoreHealth(
            available=True,
            collection_exists=exists,
            document_count=document_count,
            last_check=checked_at,
        )

    async def close(self) -> None:
        """Close the store.

        The client is recreated on next use.
        """
        if self._client is not None:
            await self._client.close()
            self._client = None
