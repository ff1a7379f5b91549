"""Embedding clients: local fastembed models and the OpenAI embeddings API."""
from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod

import numpy as np
import openai

from research_index.exceptions import EmbeddingError, ServiceUnavailableError
from research_index.resilience import call_with_timeout

logger = logging.getLogger(__name__)

EMBEDDING_SERVICE = "embedding provider"


class EmbeddingBackendUnavailableError(EmbeddingError):
    """Raised when the embedding backend is not available."""

    def __init__(self, message: str = "Embedding backend unavailable"):
        super().__init__(message)


class BaseEmbedder(ABC):
    """Async embedding client.

    ``embed_batch`` splits its input into provider-sized batches, sends them
    one after another and returns vectors in input order.
    """

    DEFAULT_BATCH_SIZE = 100

    def __init__(
        self,
        model_name: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float | None = None,
    ):
        self.model_name = model_name
        self.batch_size = max(batch_size, 1)
        self.timeout = timeout

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension."""

    @abstractmethod
    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed one provider batch, returning vectors in input order."""

    async def embed(self, text: str) -> list[float]:
        """Generate the embedding for a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for ``texts``, preserving their order."""
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            batch_vectors = await call_with_timeout(
                self._embed_many(batch),
                timeout=self.timeout,
                operation="embed",
                service=EMBEDDING_SERVICE,
            )
            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedding provider returned {len(batch_vectors)} vectors "
                    f"for {len(batch)} inputs"
                )
            vectors.extend(batch_vectors)

        logger.debug("Embedded %d texts with %s", len(texts), self.model_name)
        return vectors

    async def close(self) -> None:
        """Release provider resources."""
        return None


class FastEmbedEmbedder(BaseEmbedder):
    """Wrapper around fastembed for generating embeddings locally."""

    DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
    DEFAULT_DIMENSION = 384  # bge-small-en-v1.5

    # Known model dimensions for validation
    MODEL_DIMENSIONS: dict[str, int] = {
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-large-en-v1.5": 1024,
        "sentence-transformers/all-MiniLM-L6-v2": 384,
    }

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        embed_dimension: int | None = None,
        batch_size: int = BaseEmbedder.DEFAULT_BATCH_SIZE,
        timeout: float | None = None,
    ):
        """Initialize the embedder.

        Args:
            model_name: Name of the fastembed model to use.
            embed_dimension: Expected embedding dimension from config.
                             If provided, validates against model dimension.
            batch_size: Maximum number of texts per model call.
            timeout: Seconds allowed for each batch.
        """
        super().__init__(model_name, batch_size=batch_size, timeout=timeout)
        self._embed_dimension = embed_dimension
        self._model = None
        self._model_lock = threading.Lock()

        if embed_dimension is not None:
            expected_dim = self.MODEL_DIMENSIONS.get(model_name)
            if expected_dim is not None and embed_dimension != expected_dim:
                raise ValueError(
                    f"Config embed_dimension ({embed_dimension}) does not match "
                    f"expected dimension for model {model_name} ({expected_dim}). "
                    f"Either update embed_dimension in config to {expected_dim} "
                    f"or use a different model."
                )

    @property
    def dimension(self) -> int:
        """Return the configured dimension, else the model's known default."""
        if self._embed_dimension is not None:
            return self._embed_dimension
        return self.MODEL_DIMENSIONS.get(self.model_name, self.DEFAULT_DIMENSION)

    def _load_model(self):
        """Lazy load the embedding model."""
        with self._model_lock:
            if self._model is None:
                try:
                    from fastembed import TextEmbedding
                except ImportError as e:
                    raise EmbeddingBackendUnavailableError(
                        f"Failed to load embedding backend: {e}. "
                        "Install fastembed: pip install fastembed"
                    ) from e
                logger.info("Loading fastembed model %s", self.model_name)
                try:
                    self._model = TextEmbedding(model_name=self.model_name)
                except OSError as e:
                    # Covers connection failures during the first-run download
                    raise ServiceUnavailableError(
                        f"Failed to download embedding model {self.model_name}: {e}",
                        service=EMBEDDING_SERVICE,
                    ) from e
                except Exception as e:
                    raise EmbeddingBackendUnavailableError(
                        f"Failed to load embedding model {self.model_name}: {e}"
                    ) from e
        return self._model

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        return [
            np.asarray(vector, dtype=np.float32).tolist()
            for vector in model.embed(texts, batch_size=len(texts))
        ]

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        # The model is CPU-bound; keep it off the event loop.
        return await asyncio.to_thread(self._embed_sync, texts)


class OpenAIEmbedder(BaseEmbedder):
    """Embedding client for the OpenAI embeddings API."""

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_DIMENSION = 1536

    MODEL_DIMENSIONS: dict[str, int] = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    # Failures worth pausing and retrying for.
    TRANSIENT_ERRORS = (
        openai.APIConnectionError,
        openai.RateLimitError,
        openai.InternalServerError,
    )

    def __init__(
        self,
        api_key: str | None,
        model_name: str = DEFAULT_MODEL,
        embed_dimension: int | None = None,
        batch_size: int = BaseEmbedder.DEFAULT_BATCH_SIZE,
        timeout: float | None = None,
        client: openai.AsyncOpenAI | None = None,
    ):
        super().__init__(model_name, batch_size=batch_size, timeout=timeout)
        self._api_key = api_key
        self._embed_dimension = embed_dimension
        self._client = client

    @property
    def dimension(self) -> int:
        if self._embed_dimension is not None:
            return self._embed_dimension
        return self.MODEL_DIMENSIONS.get(self.model_name, self.DEFAULT_DIMENSION)

    def _get_client(self) -> openai.AsyncOpenAI:
        # No await between the check and the assignment, so concurrent first
        # callers on one event loop end up sharing a single client.
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self._api_key, timeout=self.timeout)
            logger.info("Created OpenAI embeddings client for %s", self.model_name)
        return self._client

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        client = self._get_client()
        request: dict = {"model": self.model_name, "input": texts}
        # Only the text-embedding-3 family accepts a custom output size.
        if self.model_name.startswith("text-embedding-3"):
            request["dimensions"] = self.dimension

        try:
            response = await client.embeddings.create(**request)
        except self.TRANSIENT_ERRORS as e:
            raise ServiceUnavailableError(
                f"OpenAI embeddings unavailable: {e}", service=EMBEDDING_SERVICE
            ) from e
        except openai.OpenAIError as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e

        # The API may answer out of order; ``index`` is the input position.
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
