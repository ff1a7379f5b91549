"""Configuration management."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from research_index.exceptions import ConfigError


class ResearchIndexConfig(BaseSettings):
    """Configuration for research_index.

    Values come from ``RESEARCH_INDEX_*`` environment variables or a local
    ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="RESEARCH_INDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Vector store settings
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    collection_name: str = "research_content"

    # Embedding settings
    embed_provider: Literal["fastembed", "openai"] = "fastembed"
    embed_model: str = "BAAI/bge-small-en-v1.5"
    embed_dimension: int = 384
    embed_batch_size: int = 100
    openai_api_key: str | None = None

    # Chunking settings (characters)
    chunk_size: int = 500
    chunk_overlap: int = 50
    long_chunk_size: int = 2000
    long_chunk_overlap: int = 300

    # Search settings
    default_limit: int = 10
    max_limit: int = 100
    vector_weight: float = 0.7
    keyword_weight: float = 0.3

    # Seconds allowed for each call to the store or the embedding provider
    request_timeout: float = 30.0

    # Logging
    verbose: bool = False

    @model_validator(mode="after")
    def _check_chunking(self) -> ResearchIndexConfig:
        for size, overlap in (
            (self.chunk_size, self.chunk_overlap),
            (self.long_chunk_size, self.long_chunk_overlap),
        ):
            if size < 1 or overlap < 0 or overlap >= size:
                raise ValueError(
                    f"Invalid chunking settings: overlap ({overlap}) must be "
                    f"non-negative and smaller than chunk size ({size})"
                )
        if self.embed_batch_size < 1:
            raise ValueError("embed_batch_size must be at least 1")
        return self


@lru_cache
def _get_config_cached() -> ResearchIndexConfig:
    return ResearchIndexConfig()


def get_config(clear_cache: bool = False) -> ResearchIndexConfig:
    """Get the configuration instance.

    Args:
        clear_cache: If True, re-read the environment before returning.

    Raises:
        ConfigError: If the environment holds invalid settings.
    """
    if clear_cache:
        _get_config_cached.cache_clear()
    try:
        return _get_config_cached()
    except ValueError as e:
        # pydantic's ValidationError subclasses ValueError
        raise ConfigError(f"Invalid configuration: {e}") from e
