"""Tests for the embedding clients."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import openai
import pytest

from research_index.embeddings import (
    EmbeddingBackendUnavailableError,
    FastEmbedEmbedder,
    OpenAIEmbedder,
)
from research_index.exceptions import (
    EmbeddingError,
    ResearchIndexError,
    ServiceUnavailableError,
)
from research_index.resilience import call_with_timeout

OPENAI_URL = "https://api.openai.com/v1/embeddings"


def _openai_response(vectors_by_index: dict[int, list[float]], reverse: bool = True):
    items = [
        SimpleNamespace(index=index, embedding=vector)
        for index, vector in sorted(vectors_by_index.items(), reverse=reverse)
    ]
    return SimpleNamespace(data=items)


class TestFastEmbedEmbedder:
    """Tests for the local fastembed client."""

    def test_dimension_from_config(self):
        embedder = FastEmbedEmbedder(embed_dimension=384)

        assert embedder.dimension == 384

    def test_dimension_mismatch_rejected(self):
        with pytest.raises(ValueError, match="does not match"):
            FastEmbedEmbedder(model_name="BAAI/bge-small-en-v1.5", embed_dimension=768)

    def test_unknown_model_accepts_any_dimension(self):
        embedder = FastEmbedEmbedder(model_name="custom/model", embed_dimension=512)

        assert embedder.dimension == 512

    @pytest.mark.asyncio
    async def test_embed_batch_uses_model(self, sample_vectors):
        embedder = FastEmbedEmbedder(batch_size=2)
        model = MagicMock()
        model.embed = MagicMock(
            side_effect=lambda texts, batch_size: iter(sample_vectors[: len(texts)])
        )
        embedder._model = model

        vectors = await embedder.embed_batch(["a", "b", "c"])

        assert len(vectors) == 3
        assert all(isinstance(vector, list) for vector in vectors)
        assert model.embed.call_count == 2
        np.testing.assert_allclose(vectors[2], sample_vectors[0], rtol=1e-6)

    @pytest.mark.asyncio
    async def test_embed_single(self, sample_vectors):
        embedder = FastEmbedEmbedder()
        model = MagicMock()
        model.embed = MagicMock(return_value=iter(sample_vectors[:1]))
        embedder._model = model

        vector = await embedder.embed("hello")

        assert len(vector) == 384

    @pytest.mark.asyncio
    async def test_empty_batch_skips_model(self):
        embedder = FastEmbedEmbedder()
        embedder._model = MagicMock()

        assert await embedder.embed_batch([]) == []
        embedder._model.embed.assert_not_called()

    @pytest.mark.asyncio
    async def test_model_load_failure_is_typed(self):
        embedder = FastEmbedEmbedder()

        with patch(
            "fastembed.TextEmbedding", side_effect=ValueError("Could not download model")
        ), pytest.raises(EmbeddingBackendUnavailableError) as exc_info:
            await embedder.embed_batch(["hello"])

        assert isinstance(exc_info.value, ResearchIndexError)
        assert exc_info.value.to_dict()["error"] == "EMBEDDING_ERROR"
        assert "Could not download model" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_model_download_connection_failure_is_retryable(self):
        embedder = FastEmbedEmbedder()

        with patch(
            "fastembed.TextEmbedding", side_effect=ConnectionError("network unreachable")
        ), pytest.raises(ServiceUnavailableError) as exc_info:
            await embedder.embed_batch(["hello"])

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_model_returning_too_few_vectors(self, sample_vectors):
        embedder = FastEmbedEmbedder()
        model = MagicMock()
        model.embed = MagicMock(return_value=iter(sample_vectors[:1]))
        embedder._model = model

        with pytest.raises(EmbeddingError):
            await embedder.embed_batch(["a", "b"])


class TestOpenAIEmbedder:
    """Tests for the OpenAI embeddings client."""

    @pytest.fixture
    def client(self) -> MagicMock:
        client = MagicMock()
        client.embeddings.create = AsyncMock()
        client.close = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_out_of_order_items_are_reordered_per_batch(self, client):
        client.embeddings.create.side_effect = [
            _openai_response({0: [0.0, 0.0], 1: [1.0, 1.0]}),
            _openai_response({0: [2.0, 2.0]}),
        ]
        embedder = OpenAIEmbedder(
            api_key="sk-test", embed_dimension=2, batch_size=2, client=client
        )

        vectors = await embedder.embed_batch(["zero", "one", "two"])

        assert vectors == [[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]]
        first, second = client.embeddings.create.await_args_list
        assert first.kwargs["input"] == ["zero", "one"]
        assert second.kwargs["input"] == ["two"]

    @pytest.mark.asyncio
    async def test_dimensions_sent_for_v3_models(self, client):
        client.embeddings.create.return_value = _openai_response({0: [0.5] * 8})
        embedder = OpenAIEmbedder(api_key="sk-test", embed_dimension=8, client=client)

        await embedder.embed("text")

        assert client.embeddings.create.await_args.kwargs["dimensions"] == 8
        assert client.embeddings.create.await_args.kwargs["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_dimensions_omitted_for_ada(self, client):
        client.embeddings.create.return_value = _openai_response({0: [0.5] * 4})
        embedder = OpenAIEmbedder(
            api_key="sk-test", model_name="text-embedding-ada-002", client=client
        )

        await embedder.embed("text")

        assert "dimensions" not in client.embeddings.create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable(self, client):
        request = httpx.Request("POST", OPENAI_URL)
        client.embeddings.create.side_effect = openai.APIConnectionError(request=request)
        embedder = OpenAIEmbedder(api_key="sk-test", client=client)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await embedder.embed("text")

        assert exc_info.value.retryable is True
        assert exc_info.value.service == "embedding provider"

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retryable(self, client):
        request = httpx.Request("POST", OPENAI_URL)
        response = httpx.Response(400, request=request)
        client.embeddings.create.side_effect = openai.BadRequestError(
            "input too long", response=response, body=None
        )
        embedder = OpenAIEmbedder(api_key="sk-test", client=client)

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed("text")

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_close_releases_client(self, client):
        embedder = OpenAIEmbedder(api_key="sk-test", client=client)

        await embedder.close()

        client.close.assert_awaited_once()


class TestCallWithTimeout:
    """Tests for the shared timeout wrapper."""

    @pytest.mark.asyncio
    async def test_timeout_becomes_service_unavailable(self):
        with pytest.raises(ServiceUnavailableError, match="timed out"):
            await call_with_timeout(
                asyncio.sleep(1), timeout=0.01, operation="embed", service="embedding provider"
            )

    @pytest.mark.asyncio
    async def test_transport_error_becomes_service_unavailable(self):
        async def refuse():
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await call_with_timeout(refuse(), timeout=1.0, operation="count", service="vector store")

        assert exc_info.value.service == "vector store"

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        async def broken():
            raise EmbeddingError("bad input")

        with pytest.raises(EmbeddingError):
            await call_with_timeout(broken(), timeout=None, operation="embed", service="x")
