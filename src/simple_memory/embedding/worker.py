"""Background worker that refreshes embedding vectors.

save and update return as soon as the record is committed; the vector is
computed afterwards on a single worker thread and written with an
existence-guarded insert. Delivery is best effort and each job is attempted
once. Jobs run in submission order, so the last refresh scheduled for a
record is the one whose vector remains.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Optional

from simple_memory.constants import WORKER_DRAIN_TIMEOUT
from simple_memory.errors import StorageError

if TYPE_CHECKING:
    from simple_memory.embedding.adapter import EmbeddingAdapter
    from simple_memory.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingWorker"]


class EmbeddingWorker:
    """Detached single-thread executor for embedding jobs.

    Args:
        store: Store receiving the vectors
        adapter: Embedding adapter; jobs are skipped when it has no provider

    Example:
        >>> worker = EmbeddingWorker(store, adapter)
        >>> worker.schedule(42, "Title\\nContent")
        >>> worker.drain(timeout=5)
        True
    """

    def __init__(self, store: SQLiteStore, adapter: EmbeddingAdapter):
        self._store = store
        self._adapter = adapter
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="embedding-worker")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False
        self.completed = 0
        self.failed = 0

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def schedule(self, memory_id: int, text: str) -> Optional[Future]:
        """Queue an embedding refresh for a record and return immediately.

        Returns:
            The job future, or None if nothing was queued
        """
        if not self._adapter.available:
            return None

        with self._lock:
            if self._closed:
                logger.warning(f"Worker closed, dropping embedding job for #{memory_id}")
                return None
            future = self._executor.submit(self._run, memory_id, text)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, memory_id: int, text: str) -> bool:
        vector = self._adapter.embed(text)
        if vector is None:
            self.failed += 1
            return False

        try:
            stored = self._store.put_embedding(memory_id, vector)
        except StorageError as e:
            logger.error(f"Failed to store embedding for #{memory_id}: {e}")
            self.failed += 1
            return False

        if stored:
            self.completed += 1
            logger.debug(f"Stored {len(vector)}-dim embedding for #{memory_id}")
        else:
            logger.debug(f"Memory #{memory_id} deleted before its embedding was stored")
        return stored

    def drain(self, timeout: Optional[float] = WORKER_DRAIN_TIMEOUT) -> bool:
        """Wait for queued jobs.

        Args:
            timeout: Seconds to wait (None waits forever)

        Returns:
            True if every job queued before the call has finished
        """
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} embedding job(s) still pending after {timeout}s")
        return not not_done

    def shutdown(self, timeout: Optional[float] = WORKER_DRAIN_TIMEOUT) -> None:
        """Drain queued jobs, then stop accepting new ones."""
        self.drain(timeout)
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
