"""Index updater - background sync of keyword and vector indexes after writes."""

import asyncio
import contextlib
import logging
from typing import Optional

from ..indexing.content import profile_keyword_content, project_keyword_content
from ..models.document import PROFILE_KIND, PROJECT_KIND, make_doc_id, split_doc_id
from ..protocols.profile_store import ProfileStoreProtocol
from .embedding_service import EmbeddingService
from .keyword_index_service import KeywordIndexService

logger = logging.getLogger(__name__)


class IndexUpdater:
    """Bounded work queue consumed by one worker task.

    Jobs are document ids. A job reloads the record, upserts (or removes) its
    keyword document and refreshes its embedding. Failed jobs are retried
    with exponential backoff, so processing is at-least-once; both index
    writes are idempotent.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        keyword_index: KeywordIndexService,
        store: ProfileStoreProtocol,
        max_queue_size: int = 1000,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        refresh_interval: Optional[float] = None,
    ):
        """Initialize index updater.

        Args:
            embedding_service: Embedding refresher.
            keyword_index: Keyword index service.
            store: Profile/project store.
            max_queue_size: Maximum pending jobs.
            max_attempts: Attempts per job before it is dropped.
            retry_delay: Delay before the first retry, doubled on each retry.
            refresh_interval: Seconds between full keyword index rebuilds;
                None disables the periodic rebuild.
        """
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if refresh_interval is not None and refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")

        self._embedding_service = embedding_service
        self._keyword_index = keyword_index
        self._store = store
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._refresh_interval = refresh_interval

        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_queue_size)
        self._pending: set[str] = set()
        self._worker: Optional[asyncio.Task] = None
        self._refresher: Optional[asyncio.Task] = None

        self.processed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, doc_id: str) -> bool:
        """Queue a document for re-indexing without blocking.

        Returns:
            False when the queue is full and the job was not accepted.
        """
        split_doc_id(doc_id)
        if doc_id in self._pending:
            return True

        try:
            self._queue.put_nowait(doc_id)
        except asyncio.QueueFull:
            logger.warning(f"Index update queue full, dropping {doc_id}")
            return False

        self._pending.add(doc_id)
        return True

    def on_profile_change(self, user_id: str) -> bool:
        return self.enqueue(make_doc_id(PROFILE_KIND, user_id))

    def on_project_change(self, project_id: str, user_id: Optional[str] = None) -> bool:
        """Queue a project and its owner's profile, whose content lists projects."""
        if user_id is None:
            project = self._store.get_projects([project_id]).get(project_id)
            user_id = project.user_id if project is not None else None

        accepted = self.enqueue(make_doc_id(PROJECT_KIND, project_id))
        if user_id is not None:
            accepted = self.on_profile_change(user_id) and accepted
        return accepted

    def on_project_delete(self, project_id: str, user_id: str) -> bool:
        accepted = self.enqueue(make_doc_id(PROJECT_KIND, project_id))
        return self.on_profile_change(user_id) and accepted

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run())
        if self._refresh_interval is not None:
            self._refresher = asyncio.create_task(self._refresh_periodically())
        logger.info("Index updater started")

    async def stop(self) -> None:
        for task in (self._worker, self._refresher):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._worker = None
        self._refresher = None
        logger.info("Index updater stopped")

    async def join(self) -> None:
        """Wait until every queued job has been processed or dropped."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            doc_id = await self._queue.get()
            try:
                await self._process(doc_id)
            finally:
                self._queue.task_done()

    async def _process(self, doc_id: str) -> None:
        # Changes arriving while this job runs must queue it again.
        self._pending.discard(doc_id)

        for attempt in range(1, self._max_attempts + 1):
            try:
                await asyncio.to_thread(self._apply, doc_id)
                self.processed += 1
                return
            except Exception as e:
                if attempt == self._max_attempts:
                    self.failed += 1
                    logger.error(
                        f"Index update for {doc_id} failed after {attempt} attempts: {e}"
                    )
                    return
                delay = self._retry_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Index update for {doc_id} failed (attempt {attempt}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)

    def _apply(self, doc_id: str) -> None:
        content = self._keyword_content(doc_id)
        if content is None:
            self._keyword_index.remove(doc_id)
        else:
            self._keyword_index.upsert(doc_id, content)

        self._embedding_service.refresh(doc_id)

    def _keyword_content(self, doc_id: str) -> Optional[str]:
        kind, record_id = split_doc_id(doc_id)
        if kind == PROFILE_KIND:
            profile = self._store.get_profiles([record_id]).get(record_id)
            return profile_keyword_content(profile) if profile is not None else None
        if kind == PROJECT_KIND:
            project = self._store.get_projects([record_id]).get(record_id)
            return project_keyword_content(project) if project is not None else None
        raise ValueError(f"Unknown document kind: {kind!r}")

    async def _refresh_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            try:
                await asyncio.to_thread(self._keyword_index.refresh)
            except Exception as e:
                logger.error(f"Periodic keyword index rebuild failed: {e}")
