"""Reranker protocol for dependency injection."""
from typing import Protocol, runtime_checkable

from ..models.search import RerankHit


@runtime_checkable
class RerankerProtocol(Protocol):
    """Protocol for reranking service."""

    def rerank(
        self,
        query: str,
        documents: list[str],
        top_k: int,
    ) -> list[RerankHit]:
        """Score (query, document) pairs.

        Args:
            query: User query.
            documents: Candidate texts.
            top_k: Maximum number of hits to return.

        Returns:
            Hits sorted by score (descending); ``index`` points into ``documents``.
        """
        ...
