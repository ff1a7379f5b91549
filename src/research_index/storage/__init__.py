"""Storage module for research_index."""
from research_index.storage.filters import build_filter, keyword_filter
from research_index.storage.vector_store import QdrantStore, StoreHit

__all__ = ["QdrantStore", "StoreHit", "build_filter", "keyword_filter"]
