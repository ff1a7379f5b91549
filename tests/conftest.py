"""Pytest configuration and fixtures for research_index tests."""
from __future__ import annotations

import tempfile
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from research_index.config import ResearchIndexConfig
from research_index.models import StoreHealth
from research_index.storage import StoreHit

DIMENSION = 384


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def mock_config() -> ResearchIndexConfig:
    """Create a config for testing."""
    return ResearchIndexConfig(
        qdrant_url="http://qdrant.test:6333",
        collection_name="test_content",
        embed_model="BAAI/bge-small-en-v1.5",
        embed_dimension=DIMENSION,
        default_limit=5,
        verbose=True,
    )


@pytest.fixture
def sample_vectors() -> np.ndarray:
    """Deterministic unit vectors for fake embeddings."""
    rng = np.random.default_rng(42)
    vectors = rng.standard_normal((8, DIMENSION)).astype(np.float32)
    return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


def healthy() -> StoreHealth:
    return StoreHealth(
        available=True,
        collection_exists=True,
        document_count=3,
        last_check=datetime.now(timezone.utc),
    )


def make_hit(point_id: str, text: str = "", score: float | None = None, **payload) -> StoreHit:
    """Build a store hit whose payload carries ``text`` plus ``payload``."""
    return StoreHit(id=point_id, payload={"text": text or point_id, **payload}, score=score)


@pytest.fixture
def mock_store() -> MagicMock:
    """Create a mock QdrantStore with async methods."""
    store = MagicMock()
    store.health = AsyncMock(return_value=healthy())
    store.upsert = AsyncMock(side_effect=lambda points, wait=True: len(points))
    store.vector_search = AsyncMock(return_value=[])
    store.keyword_scroll = AsyncMock(return_value=[])
    store.count = AsyncMock(return_value=0)
    store.delete_by_filter = AsyncMock(return_value=0)
    store.delete_points = AsyncMock(side_effect=lambda ids: len(ids))
    store.retrieve = AsyncMock(return_value=None)
    store.scroll_page = AsyncMock(return_value=([], None))
    store.ensure_collection = AsyncMock(return_value=True)
    store.close = AsyncMock()
    return store


@pytest.fixture
def mock_embedder(sample_vectors: np.ndarray) -> MagicMock:
    """Create a mock embedder returning one vector per input text."""
    embedder = MagicMock()
    embedder.model_name = "BAAI/bge-small-en-v1.5"
    embedder.dimension = DIMENSION

    async def embed_batch(texts):
        return [sample_vectors[i % len(sample_vectors)].tolist() for i in range(len(texts))]

    embedder.embed_batch = AsyncMock(side_effect=embed_batch)
    embedder.embed = AsyncMock(return_value=sample_vectors[0].tolist())
    embedder.close = AsyncMock()
    return embedder
