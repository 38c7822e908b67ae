"""Vector search service - semantic similarity over profile/project embeddings."""

import logging
import math
from typing import Optional

import numpy as np

from ..models.document import PROFILE_KIND, PROJECT_KIND, VectorHit
from ..protocols.embedder import EmbedderProtocol
from ..protocols.vector_store import VectorStoreProtocol

logger = logging.getLogger(__name__)


class VectorSearchService:
    """Embeds queries and searches the vector store."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        threshold: float = 0.3,
        profile_share: float = 0.7,
        query_prefix: str = "query: ",
    ):
        """Initialize vector search service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            threshold: Default minimum similarity (exclusive).
            profile_share: Share of the limit given to profiles when
                projects are searched too.
            query_prefix: Prefix expected by the embedding model for queries.
        """
        if not 0.0 <= profile_share <= 1.0:
            raise ValueError("profile_share must be within [0, 1]")
        if not -1.0 <= threshold <= 1.0:
            raise ValueError("threshold must be within [-1, 1]")

        self._embedder = embedder
        self._vector_store = vector_store
        self._threshold = threshold
        self._profile_share = profile_share
        self._project_share = round(1.0 - profile_share, 6)
        self._query_prefix = query_prefix

    def embed_query(self, query: str) -> Optional[list[float]]:
        """Embed a query; None when the provider fails or returns nothing."""
        try:
            embedding = np.asarray(self._embedder.encode(f"{self._query_prefix}{query}"))
        except Exception as e:
            logger.warning(f"Query embedding failed: {e}")
            return None

        embedding = embedding.reshape(-1)
        if embedding.size == 0:
            logger.warning("Query embedding is empty")
            return None
        return embedding.tolist()

    def similarity_search(
        self,
        query_embedding: list[float],
        threshold: Optional[float] = None,
        limit: int = 20,
        kind: Optional[str] = None,
    ) -> list[VectorHit]:
        """Hits strictly above the threshold, best first."""
        if not query_embedding or limit <= 0:
            return []

        threshold = self._threshold if threshold is None else threshold
        hits = self._vector_store.query(
            query_embedding=query_embedding,
            n_results=limit,
            kind=kind,
            threshold=threshold,
        )
        hits = [h for h in hits if h.similarity > threshold]
        hits.sort(key=lambda h: (-h.similarity, h.id))
        return hits[:limit]

    def search(
        self,
        query: str,
        limit: int = 20,
        threshold: Optional[float] = None,
        include_profiles: bool = True,
        include_projects: bool = True,
    ) -> list[VectorHit]:
        """Semantic search over profiles and/or projects.

        Returns an empty list when the query cannot be embedded.
        """
        if not query.strip() or limit <= 0:
            return []
        if not include_profiles and not include_projects:
            return []

        query_embedding = self.embed_query(query)
        if query_embedding is None:
            return []

        if include_profiles and include_projects:
            profile_limit = math.ceil(limit * self._profile_share)
            project_limit = math.ceil(limit * self._project_share)
        else:
            profile_limit = limit if include_profiles else 0
            project_limit = limit if include_projects else 0

        hits: list[VectorHit] = []
        if profile_limit:
            hits.extend(
                self.similarity_search(
                    query_embedding, threshold, profile_limit, kind=PROFILE_KIND
                )
            )
        if project_limit:
            hits.extend(
                self.similarity_search(
                    query_embedding, threshold, project_limit, kind=PROJECT_KIND
                )
            )

        hits.sort(key=lambda h: (-h.similarity, h.id))
        hits = hits[:limit]

        logger.info(f"Vector search: {len(hits)} hits for '{query[:50]}'")
        return hits
