"""Query service for research_index."""
from __future__ import annotations

import asyncio
import logging

from qdrant_client import models

from research_index.embeddings import BaseEmbedder
from research_index.exceptions import ServiceUnavailableError, ValidationError
from research_index.models import HybridResult, SearchFilter, SearchResult
from research_index.services.fusion import fuse
from research_index.storage import QdrantStore, StoreHit, build_filter
from research_index.storage.vector_store import STORE_SERVICE

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_VECTOR_WEIGHT = 0.7
DEFAULT_KEYWORD_WEIGHT = 0.3
# Each sub-search fetches this many candidates per requested result.
CANDIDATE_MULTIPLIER = 2


class QueryService:
    """Hybrid (vector + keyword) and pure vector search over the store."""

    def __init__(
        self,
        store: QdrantStore,
        embedder: BaseEmbedder,
        *,
        max_limit: int = 100,
    ):
        self.store = store
        self.embedder = embedder
        self.max_limit = max_limit

    async def hybrid_search(
        self,
        query: str,
        search_filter: SearchFilter | None = None,
        limit: int = DEFAULT_LIMIT,
        vector_weight: float = DEFAULT_VECTOR_WEIGHT,
        keyword_weight: float = DEFAULT_KEYWORD_WEIGHT,
    ) -> list[HybridResult]:
        """Search with both signals and return at most ``limit`` fused results.

        Raises:
            ValidationError: On a blank query, out-of-range limit or negative weight.
            ServiceUnavailableError: If the store fails its health probe. No
                sub-search is attempted in that case.
        """
        self._validate(query, limit)
        if vector_weight < 0 or keyword_weight < 0:
            raise ValidationError(
                f"Weights must be non-negative, got vector_weight={vector_weight}, "
                f"keyword_weight={keyword_weight}"
            )
        await self._require_store()

        native_filter = build_filter(search_filter)
        candidates = limit * CANDIDATE_MULTIPLIER

        # Both sub-searches are reads; either failing fails the whole search.
        vector_hits, keyword_hits = await asyncio.gather(
            self._vector_hits(query, native_filter, candidates),
            self.store.keyword_scroll(query, native_filter, candidates),
        )
        logger.debug(
            "Hybrid search %r: %d vector hits, %d keyword hits",
            query,
            len(vector_hits),
            len(keyword_hits),
        )
        return fuse(vector_hits, keyword_hits, limit, vector_weight, keyword_weight)

    async def vector_search(
        self,
        query: str,
        search_filter: SearchFilter | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[SearchResult]:
        """Pure vector similarity search."""
        self._validate(query, limit)
        await self._require_store()

        hits = await self._vector_hits(query, build_filter(search_filter), limit)
        return [
            SearchResult.from_payload(hit.id, hit.payload, float(hit.score or 0.0))
            for hit in hits
        ]

    async def _vector_hits(
        self,
        query: str,
        native_filter: models.Filter | None,
        limit: int,
    ) -> list[StoreHit]:
        query_vector = await self.embedder.embed(query)
        return await self.store.vector_search(query_vector, native_filter, limit)

    async def _require_store(self) -> None:
        health = await self.store.health()
        if not health.available:
            raise ServiceUnavailableError(
                f"Qdrant unavailable: {health.error or 'health check failed'}",
                service=STORE_SERVICE,
            )

    def _validate(self, query: str, limit: int) -> None:
        if not query or not query.strip():
            raise ValidationError("Query must not be empty")
        if not 1 <= limit <= self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}, got {limit}")

    async def close(self) -> None:
        """Close the service."""
        await self.store.close()
