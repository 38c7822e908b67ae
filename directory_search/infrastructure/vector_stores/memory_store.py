import logging
import threading
from typing import Optional

import numpy as np

from directory_search.core.models.document import EmbeddingRecord, VectorHit

logger = logging.getLogger(__name__)


class InMemoryVectorStore:
    """Vector store keeping embeddings in process memory."""

    def __init__(self):
        self._records: dict[str, EmbeddingRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, records: list[EmbeddingRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record

    def delete(self, ids: list[str]) -> None:
        with self._lock:
            for record_id in ids:
                self._records.pop(record_id, None)

    def query(
        self,
        query_embedding: list[float],
        n_results: int = 20,
        kind: Optional[str] = None,
        threshold: float = 0.0,
    ) -> list[VectorHit]:
        """Search by cosine similarity."""
        query = np.asarray(query_embedding, dtype=np.float32)
        query_norm = np.linalg.norm(query)
        if query.size == 0 or query_norm == 0 or n_results <= 0:
            return []

        with self._lock:
            candidates = [
                r for r in self._records.values()
                if kind is None or r.kind == kind
            ]
        candidates = [r for r in candidates if len(r.embedding) == query.size]
        if not candidates:
            return []

        embeddings = np.asarray([r.embedding for r in candidates], dtype=np.float32)
        norms = np.linalg.norm(embeddings, axis=1)
        safe_norms = np.where(norms == 0, 1.0, norms)
        similarities = embeddings @ query / (safe_norms * query_norm)
        similarities = np.where(norms == 0, -1.0, similarities)

        hits = [
            VectorHit(
                id=record.id,
                kind=record.kind,
                similarity=float(similarity),
                content=record.content_preview,
                content_hash=record.content_hash,
            )
            for record, similarity in zip(candidates, similarities)
            if similarity > threshold
        ]
        hits.sort(key=lambda h: (-h.similarity, h.id))
        return hits[:n_results]

    def get_content_hashes(self, ids: list[str]) -> dict[str, str]:
        with self._lock:
            return {
                record_id: self._records[record_id].content_hash
                for record_id in ids
                if record_id in self._records
            }

    def count(self) -> int:
        """Get record count."""
        return len(self._records)
