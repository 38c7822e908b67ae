"""Protocol interfaces for dependency injection."""
from .embedder import EmbedderProtocol
from .vector_store import VectorStoreProtocol
from .reranker import RerankerProtocol
from .llm import StructuredLLMProtocol
from .profile_store import ProfileStoreProtocol

__all__ = [
    "EmbedderProtocol",
    "VectorStoreProtocol",
    "RerankerProtocol",
    "StructuredLLMProtocol",
    "ProfileStoreProtocol",
]
