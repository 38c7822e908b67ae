"""Embedding service - keeps profile/project embeddings in sync with the store."""

import logging
from typing import Optional

import numpy as np

from ..indexing.content import (
    content_hash,
    profile_embedding_content,
    project_embedding_content,
)
from ..models.document import PROFILE_KIND, PROJECT_KIND, EmbeddingRecord, split_doc_id
from ..protocols.embedder import EmbedderProtocol
from ..protocols.profile_store import ProfileStoreProtocol
from ..protocols.vector_store import VectorStoreProtocol

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Service for embedding profiles and projects into the vector store."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        vector_store: VectorStoreProtocol,
        store: ProfileStoreProtocol,
        passage_prefix: str = "passage: ",
        preview_chars: int = 500,
        batch_size: int = 50,
    ):
        """Initialize embedding service.

        Args:
            embedder: Embedding service.
            vector_store: Vector store.
            store: Profile/project store.
            passage_prefix: Prefix expected by the embedding model for passages.
            preview_chars: Characters of content stored with each record.
            batch_size: Batch size for bulk embedding.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self._embedder = embedder
        self._vector_store = vector_store
        self._store = store
        self._passage_prefix = passage_prefix
        self._preview_chars = preview_chars
        self._batch_size = batch_size

    def embedding_content(self, doc_id: str) -> Optional[str]:
        """Text embedded for a document id; None when the record is gone."""
        kind, record_id = split_doc_id(doc_id)

        if kind == PROFILE_KIND:
            profile = self._store.get_profiles([record_id]).get(record_id)
            if profile is None:
                return None
            projects = self._store.get_projects_for_user(record_id, limit=3)
            return profile_embedding_content(profile, projects)

        if kind == PROJECT_KIND:
            project = self._store.get_projects([record_id]).get(record_id)
            if project is None:
                return None
            owner = self._store.get_profiles([project.user_id]).get(project.user_id)
            return project_embedding_content(project, owner)

        raise ValueError(f"Unknown document kind: {kind!r}")

    def refresh(self, doc_id: str, force: bool = False) -> bool:
        """Re-embed one document if its content changed.

        Returns:
            True when the vector store was modified.
        """
        content = self.embedding_content(doc_id)
        if content is None:
            self._vector_store.delete([doc_id])
            logger.info(f"Removed embedding for deleted record: {doc_id}")
            return True

        digest = content_hash(content)
        if not force:
            stored = self._vector_store.get_content_hashes([doc_id])
            if stored.get(doc_id) == digest:
                logger.debug(f"Skip unchanged: {doc_id}")
                return False

        kind, _ = split_doc_id(doc_id)
        embedding = self._encode([content])[0]
        self._vector_store.upsert([self._record(doc_id, kind, content, digest, embedding)])
        logger.info(f"Embedded {doc_id}")
        return True

    def refresh_all(self, force: bool = False) -> int:
        """Embed every profile and project whose content changed.

        Args:
            force: Re-embed everything regardless of content hashes.

        Returns:
            Number of records embedded.
        """
        pending: list[tuple[str, str, str, str]] = []

        projects = self._store.list_projects()
        profiles = self._store.list_profiles()
        owners = {p.user_id: p for p in profiles}

        for profile in profiles:
            owned = self._store.get_projects_for_user(profile.user_id, limit=3)
            content = profile_embedding_content(profile, owned)
            pending.append((profile.doc_id, PROFILE_KIND, content, content_hash(content)))

        for project in projects:
            content = project_embedding_content(project, owners.get(project.user_id))
            pending.append((project.doc_id, PROJECT_KIND, content, content_hash(content)))

        if not force and pending:
            stored = self._vector_store.get_content_hashes([p[0] for p in pending])
            pending = [p for p in pending if stored.get(p[0]) != p[3]]

        if not pending:
            logger.info("No changed records to embed")
            return 0

        total = 0
        for i in range(0, len(pending), self._batch_size):
            batch = pending[i : i + self._batch_size]
            embeddings = self._encode([content for _, _, content, _ in batch])
            records = [
                self._record(doc_id, kind, content, digest, embedding)
                for (doc_id, kind, content, digest), embedding in zip(batch, embeddings)
            ]
            self._vector_store.upsert(records)

            total += len(batch)
            logger.info(f"Embedded batch: {total}/{len(pending)}")

        logger.info(f"Embedding complete: {total} records")
        return total

    def _encode(self, contents: list[str]) -> list[list[float]]:
        texts = [f"{self._passage_prefix}{c}" for c in contents]
        embeddings = np.asarray(self._embedder.encode(texts))
        if embeddings.ndim != 2 or embeddings.shape[0] != len(contents):
            raise ValueError(
                f"Embedder returned shape {embeddings.shape} for {len(contents)} texts"
            )
        if embeddings.shape[1] == 0:
            raise ValueError("Embedder returned zero-length vectors")
        return embeddings.tolist()

    def _record(
        self,
        doc_id: str,
        kind: str,
        content: str,
        digest: str,
        embedding: list[float],
    ) -> EmbeddingRecord:
        return EmbeddingRecord(
            id=doc_id,
            kind=kind,
            embedding=embedding,
            content_hash=digest,
            content_preview=content[: self._preview_chars],
        )
