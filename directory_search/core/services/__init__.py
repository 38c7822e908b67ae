"""Core business services."""
from .keyword_index_service import KeywordIndexService, ReadWriteLock
from .vector_search_service import VectorSearchService
from .query_parser import QueryParser
from .hybrid_search_service import HybridSearchService
from .directory_service import DirectoryService
from .embedding_service import EmbeddingService
from .index_updater import IndexUpdater

__all__ = [
    "KeywordIndexService",
    "ReadWriteLock",
    "VectorSearchService",
    "QueryParser",
    "HybridSearchService",
    "DirectoryService",
    "EmbeddingService",
    "IndexUpdater",
]
