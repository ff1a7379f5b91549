"""Embeddings module for research_index."""
from research_index.embeddings.embedder import (
    BaseEmbedder,
    EmbeddingBackendUnavailableError,
    FastEmbedEmbedder,
    OpenAIEmbedder,
)

__all__ = [
    "BaseEmbedder",
    "EmbeddingBackendUnavailableError",
    "FastEmbedEmbedder",
    "OpenAIEmbedder",
]
