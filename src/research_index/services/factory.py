"""Service factory for dependency injection."""
from __future__ import annotations

from research_index.chunking import ChunkingProfile
from research_index.config import ResearchIndexConfig, get_config
from research_index.embeddings import BaseEmbedder, FastEmbedEmbedder, OpenAIEmbedder
from research_index.exceptions import ConfigError
from research_index.services.document_service import DocumentService
from research_index.services.ingest_service import IngestService
from research_index.services.query_service import QueryService
from research_index.storage import QdrantStore


class ServiceFactory:
    """Factory for creating service instances with dependency injection.

    The embedder and the store are created once per factory and shared by
    every service it builds.
    """

    def __init__(self, config: ResearchIndexConfig | None = None):
        """Initialize the service factory."""
        self._config = config or get_config()
        self._embedder: BaseEmbedder | None = None
        self._store: QdrantStore | None = None

    @property
    def config(self) -> ResearchIndexConfig:
        return self._config

    @property
    def default_profile(self) -> ChunkingProfile:
        return ChunkingProfile(self._config.chunk_size, self._config.chunk_overlap)

    @property
    def long_document_profile(self) -> ChunkingProfile:
        return ChunkingProfile(self._config.long_chunk_size, self._config.long_chunk_overlap)

    def create_embedder(self) -> BaseEmbedder:
        """Return the embedding client configured by ``embed_provider``.

        Raises:
            ConfigError: If the OpenAI provider is selected without an API key.
        """
        if self._embedder is None:
            config = self._config
            if config.embed_provider == "openai":
                if not config.openai_api_key:
                    raise ConfigError(
                        "RESEARCH_INDEX_OPENAI_API_KEY is required when "
                        "embed_provider is 'openai'"
                    )
                self._embedder = OpenAIEmbedder(
                    api_key=config.openai_api_key,
                    model_name=config.embed_model,
                    embed_dimension=config.embed_dimension,
                    batch_size=config.embed_batch_size,
                    timeout=config.request_timeout,
                )
            else:
                try:
                    self._embedder = FastEmbedEmbedder(
                        model_name=config.embed_model,
                        embed_dimension=config.embed_dimension,
                        batch_size=config.embed_batch_size,
                        timeout=config.request_timeout,
                    )
                except ValueError as e:
                    raise ConfigError(str(e)) from e
        return self._embedder

    def create_vector_store(self) -> QdrantStore:
        """Return the Qdrant store configured from the app config."""
        if self._store is None:
            config = self._config
            self._store = QdrantStore(
                url=config.qdrant_url,
                collection_name=config.collection_name,
                api_key=config.qdrant_api_key,
                dimension=config.embed_dimension,
                timeout=config.request_timeout,
            )
        return self._store

    def create_ingest_service(self) -> IngestService:
        return IngestService(
            store=self.create_vector_store(),
            embedder=self.create_embedder(),
            profile=self.default_profile,
        )

    def create_query_service(self) -> QueryService:
        return QueryService(
            store=self.create_vector_store(),
            embedder=self.create_embedder(),
            max_limit=self._config.max_limit,
        )

    def create_document_service(self) -> DocumentService:
        return DocumentService(store=self.create_vector_store())

    async def close(self) -> None:
        """Close the shared clients."""
        if self._store is not None:
            await self._store.close()
        if self._embedder is not None:
            await self._embedder.close()


def get_service_factory(config: ResearchIndexConfig | None = None) -> ServiceFactory:
    """Create a ServiceFactory instance."""
    return ServiceFactory(config=config)
