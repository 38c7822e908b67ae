"""Keyword index service - owns the shared BM25 index."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from ..indexing.bm25 import IndexStats, KeywordIndex
from ..indexing.content import build_keyword_documents
from ..models.document import Document, KeywordHit
from ..protocols.profile_store import ProfileStoreProtocol

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class KeywordIndexService:
    """BM25 index over every profile and project, rebuilt on demand.

    Full rebuilds construct a new index without blocking readers and swap it
    in. Rebuilds and incremental updates are serialized by the build lock;
    reads share a read/write lock with the swap and the updates.
    """

    def __init__(self, store: ProfileStoreProtocol):
        """Initialize keyword index service.

        Args:
            store: Profile/project store used for full rebuilds.
        """
        self._store = store
        self._lock = ReadWriteLock()
        self._build_lock = threading.Lock()
        self._index: Optional[KeywordIndex] = None
        self._built_at: Optional[float] = None

    @property
    def is_built(self) -> bool:
        return self._index is not None

    @property
    def built_at(self) -> Optional[float]:
        return self._built_at

    def build(self) -> IndexStats:
        """Build a fresh index from the store and swap it in."""
        with self._build_lock:
            return self._build_locked()

    def _build_locked(self) -> IndexStats:
        # Caller holds _build_lock, so no incremental write lands in the old
        # index between the store snapshot and the swap.
        start = time.perf_counter()
        documents = build_keyword_documents(
            self._store.list_profiles(), self._store.list_projects()
        )
        index = KeywordIndex.build(documents)

        with self._lock.write():
            self._index = index
            self._built_at = time.time()

        logger.info(
            f"Keyword index ready: {index.document_count} docs "
            f"in {(time.perf_counter() - start) * 1000:.0f}ms"
        )
        return index.stats()

    def refresh(self) -> IndexStats:
        """Rebuild after out-of-band record changes."""
        return self.build()

    def ensure_built(self) -> None:
        with self._build_lock:
            if self._index is None:
                self._build_locked()

    def upsert(self, doc_id: str, content: str) -> None:
        """Add or replace one document; waits for a running rebuild."""
        with self._build_lock, self._lock.write():
            if self._index is None:
                self._index = KeywordIndex()
            self._index.add(Document(id=doc_id, content=content))

    def remove(self, doc_id: str) -> None:
        with self._build_lock, self._lock.write():
            if self._index is not None:
                self._index.remove(doc_id)

    def search(
        self, query: str, top_k: int = 20, min_score: float = 0.0
    ) -> list[KeywordHit]:
        """Search the index; an unbuilt index yields no hits."""
        with self._lock.read():
            if self._index is None:
                logger.warning("Keyword index searched before it was built")
                return []
            return self._index.search(query, top_k=top_k, min_score=min_score)

    def stats(self) -> IndexStats:
        with self._lock.read():
            if self._index is None:
                return KeywordIndex().stats()
            return self._index.stats()
