"""Service layer for research_index."""
from research_index.services.document_service import DocumentService
from research_index.services.factory import ServiceFactory, get_service_factory
from research_index.services.ingest_service import IngestService
from research_index.services.query_service import QueryService

__all__ = [
    "DocumentService",
    "IngestService",
    "QueryService",
    "ServiceFactory",
    "get_service_factory",
]
