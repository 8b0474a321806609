"""
Background Thumbnail Worker Pool.

Bounded pool that derives thumbnails off the upload path. The base record
is already committed and servable when a task is queued; the pool only
attaches derived fields once the thumbnail exists.

Key behaviors:
- At most queue_size tasks pending or running; extra submissions are dropped
- A thumbnail whose record was deleted meanwhile is discarded
- Failures are logged, never raised to the submitter
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from assetstore.core.ports.db import AssetRecordRepoPort, RepositoryError
from assetstore.core.ports.thumbnails import ThumbnailError, ThumbnailerPort

logger = logging.getLogger(__name__)


class ThumbnailWorkerPool:
    def __init__(
        self,
        thumbnailer: ThumbnailerPort,
        repo: AssetRecordRepoPort,
        *,
        workers: int = 2,
        queue_size: int = 64,
    ) -> None:
        self._thumbnailer = thumbnailer
        self._repo = repo
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="thumbnail")
        self._slots = threading.BoundedSemaphore(queue_size)
        self._futures: set[Future[bool]] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, storage_name: str, mime_type: str) -> bool:
        """Queue a derive task. Returns False if the pool is full or closed."""
        if self._closed:
            return False

        if not self._slots.acquire(blocking=False):
            logger.warning("Thumbnail queue full, skipping derivation for %s", storage_name)
            return False

        try:
            future = self._executor.submit(self._run, storage_name, mime_type)
        except RuntimeError:
            self._slots.release()
            return False

        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._on_done)
        return True

    def drain(self, timeout: float | None = None) -> None:
        """Wait for every queued task to finish."""
        with self._lock:
            pending = list(self._futures)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _on_done(self, future: Future[bool]) -> None:
        with self._lock:
            self._futures.discard(future)

    def _run(self, storage_name: str, mime_type: str) -> bool:
        # Slot must be free before the future resolves
        try:
            return self._derive_and_attach(storage_name, mime_type)
        finally:
            self._slots.release()

    def _derive_and_attach(self, storage_name: str, mime_type: str) -> bool:
        try:
            derived = self._thumbnailer.derive(storage_name, mime_type)
        except ThumbnailError as e:
            logger.warning("Background thumbnail failed for %s: %s", storage_name, e.reason)
            return False

        if derived is None:
            return False

        try:
            attached = self._repo.attach_derived(storage_name, derived)
        except RepositoryError:
            logger.exception("Could not attach thumbnail for %s", storage_name)
            attached = False

        if not attached:
            # Record deleted (or already derived) while we were working
            self._thumbnailer.discard(derived.location)
            return False

        logger.info("Thumbnail attached for %s", storage_name)
        return True
