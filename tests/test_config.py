"""Tests for configuration loading."""
from __future__ import annotations

import pytest

from research_index.config import ResearchIndexConfig, get_config
from research_index.exceptions import ConfigError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, temp_dir):
    """Run each test away from any local .env file with a fresh cache."""
    monkeypatch.chdir(temp_dir)
    get_config(clear_cache=True)
    yield
    monkeypatch.undo()
    get_config(clear_cache=True)


class TestResearchIndexConfig:
    """Tests for ResearchIndexConfig."""

    def test_defaults(self):
        config = ResearchIndexConfig()

        assert config.qdrant_url == "http://localhost:6333"
        assert config.collection_name == "research_content"
        assert config.embed_provider == "fastembed"
        assert config.embed_dimension == 384
        assert (config.chunk_size, config.chunk_overlap) == (500, 50)
        assert (config.long_chunk_size, config.long_chunk_overlap) == (2000, 300)
        assert (config.vector_weight, config.keyword_weight) == (0.7, 0.3)
        assert config.default_limit == 10
        assert config.max_limit == 100

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_INDEX_QDRANT_URL", "http://qdrant:6333")
        monkeypatch.setenv("RESEARCH_INDEX_EMBED_PROVIDER", "openai")
        monkeypatch.setenv("RESEARCH_INDEX_CHUNK_SIZE", "800")

        config = ResearchIndexConfig()

        assert config.qdrant_url == "http://qdrant:6333"
        assert config.embed_provider == "openai"
        assert config.chunk_size == 800

    def test_dotenv_file(self, temp_dir):
        (temp_dir / ".env").write_text("RESEARCH_INDEX_COLLECTION_NAME=papers\n")

        assert ResearchIndexConfig().collection_name == "papers"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunk_size": 100, "chunk_overlap": 100},
            {"long_chunk_size": 100, "long_chunk_overlap": 200},
            {"chunk_overlap": -1},
            {"embed_batch_size": 0},
        ],
    )
    def test_invalid_settings_rejected(self, overrides):
        with pytest.raises(ValueError):
            ResearchIndexConfig(**overrides)


class TestGetConfig:
    """Tests for get_config."""

    def test_cached(self):
        assert get_config() is get_config()

    def test_clear_cache_rereads_environment(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("RESEARCH_INDEX_COLLECTION_NAME", "other")

        second = get_config(clear_cache=True)

        assert second is not first
        assert second.collection_name == "other"

    def test_invalid_environment_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("RESEARCH_INDEX_CHUNK_OVERLAP", "5000")

        with pytest.raises(ConfigError):
            get_config(clear_cache=True)
