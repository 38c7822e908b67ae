"""Vector store protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import EmbeddingRecord, VectorHit


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """Protocol for embedding storage and similarity search."""

    def upsert(self, records: list[EmbeddingRecord]) -> None:
        """Insert or replace embedding records by id."""
        ...

    def delete(self, ids: list[str]) -> None:
        """Delete embedding records; unknown ids are ignored."""
        ...

    def query(
        self,
        query_embedding: list[float],
        n_results: int = 20,
        kind: Optional[str] = None,
        threshold: float = 0.0,
    ) -> list[VectorHit]:
        """Search by embedding.

        Args:
            query_embedding: Query vector.
            n_results: Number of results to return.
            kind: Restrict to "profile" or "project" records.
            threshold: Minimum similarity (exclusive).

        Returns:
            Hits sorted by similarity (descending).
        """
        ...

    def get_content_hashes(self, ids: list[str]) -> dict[str, str]:
        """Map of id -> stored content hash for ids that exist."""
        ...

    def count(self) -> int:
        """Get record count."""
        ...
