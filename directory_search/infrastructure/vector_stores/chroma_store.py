import logging
from typing import Optional

import requests

from directory_search.core.models.document import EmbeddingRecord, VectorHit

logger = logging.getLogger(__name__)


class ChromaVectorStore:
    """Vector store using ChromaDB HTTP API."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8001,
        collection_name: str = "directory",
        tenant: str = "default_tenant",
        database: str = "default_database",
        timeout: float = 10.0,
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Collection name.
            tenant: Tenant name.
            database: Database name.
            timeout: HTTP timeout in seconds.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._timeout = timeout
        self._collection_id: Optional[str] = None

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    def _ensure_collection(self) -> str:
        """Get or create collection, return ID."""
        if self._collection_id:
            return self._collection_id

        resp = requests.get(self._collections_url, timeout=self._timeout)
        if resp.status_code == 200:
            for col in resp.json():
                if col["name"] == self._collection_name:
                    self._collection_id = col["id"]
                    return self._collection_id

        resp = requests.post(
            self._collections_url,
            json={"name": self._collection_name, "metadata": {"hnsw:space": "cosine"}},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        self._collection_id = resp.json()["id"]
        logger.info(f"Created collection: {self._collection_name}")
        return self._collection_id

    def upsert(self, records: list[EmbeddingRecord]) -> None:
        """Insert or replace records by id."""
        if not records:
            return
        col_id = self._ensure_collection()
        resp = requests.post(
            f"{self._collections_url}/{col_id}/upsert",
            json={
                "ids": [r.id for r in records],
                "embeddings": [list(r.embedding) for r in records],
                "documents": [r.content_preview for r in records],
                "metadatas": [
                    {"kind": r.kind, "content_hash": r.content_hash} for r in records
                ],
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()

    def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        col_id = self._ensure_collection()
        resp = requests.post(
            f"{self._collections_url}/{col_id}/delete",
            json={"ids": ids},
            timeout=self._timeout,
        )
        resp.raise_for_status()

    def query(
        self,
        query_embedding: list[float],
        n_results: int = 20,
        kind: Optional[str] = None,
        threshold: float = 0.0,
    ) -> list[VectorHit]:
        """Search by embedding."""
        col_id = self._ensure_collection()
        payload = {
            "query_embeddings": [list(query_embedding)],
            "n_results": n_results,
            "include": ["documents", "metadatas", "distances"],
        }
        if kind is not None:
            payload["where"] = {"kind": kind}

        resp = requests.post(
            f"{self._collections_url}/{col_id}/query",
            json=payload,
            timeout=self._timeout,
        )

        if resp.status_code != 200:
            logger.warning(f"Chroma query failed: HTTP {resp.status_code}")
            return []

        data = resp.json()
        results = []

        if data.get("ids") and data["ids"][0]:
            for i in range(len(data["ids"][0])):
                distance = data["distances"][0][i]
                similarity = 1.0 - distance
                if similarity <= threshold:
                    continue

                metadata = (data.get("metadatas") or [[]])[0][i] or {}
                documents = (data.get("documents") or [[]])[0]
                results.append(
                    VectorHit(
                        id=data["ids"][0][i],
                        kind=metadata.get("kind", ""),
                        similarity=similarity,
                        content=documents[i] if documents else "",
                        metadata=metadata,
                        content_hash=metadata.get("content_hash"),
                    )
                )

        results.sort(key=lambda h: (-h.similarity, h.id))
        return results

    def get_content_hashes(self, ids: list[str]) -> dict[str, str]:
        if not ids:
            return {}
        col_id = self._ensure_collection()
        resp = requests.post(
            f"{self._collections_url}/{col_id}/get",
            json={"ids": ids, "include": ["metadatas"]},
            timeout=self._timeout,
        )
        if resp.status_code != 200:
            return {}

        data = resp.json()
        hashes = {}
        for record_id, metadata in zip(data.get("ids", []), data.get("metadatas", [])):
            if metadata and metadata.get("content_hash"):
                hashes[record_id] = metadata["content_hash"]
        return hashes

    def count(self) -> int:
        """Get record count."""
        col_id = self._ensure_collection()
        resp = requests.get(
            f"{self._collections_url}/{col_id}/count", timeout=self._timeout
        )
        return resp.json() if resp.status_code == 200 else 0
