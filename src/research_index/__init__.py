"""research_index - Hybrid (vector + keyword) document search on Qdrant."""
from research_index.models import (
    Chunk,
    DocumentMetadata,
    HybridResult,
    SearchFilter,
    SearchResult,
)

__version__ = "0.1.0"

__all__ = ["Chunk", "DocumentMetadata", "HybridResult", "SearchFilter", "SearchResult"]
