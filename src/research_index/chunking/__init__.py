"""Chunking module for research_index."""
from research_index.chunking.text_splitter import (
    DEFAULT_PROFILE,
    DEFAULT_SEPARATORS,
    LONG_DOCUMENT_PROFILE,
    ChunkingProfile,
    RecursiveCharacterSplitter,
    split_text,
)

__all__ = [
    "DEFAULT_PROFILE",
    "DEFAULT_SEPARATORS",
    "LONG_DOCUMENT_PROFILE",
    "ChunkingProfile",
    "RecursiveCharacterSplitter",
    "split_text",
]
