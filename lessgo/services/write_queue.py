"""Fire-and-forget writes (draft auto-save, view counters, last-active).

A single worker thread runs jobs in submission order, so writes to the
same entity are serialized and never reordered. Failures are logged and
swallowed: callers that must report errors write synchronously instead.
"""
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, Set

from lessgo.core.log import get_logger

logger = get_logger("lessgo.write_queue")


class WriteQueue:
    def __init__(self, name: str = "lessgo-writes"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, label: str, fn: Callable, *args, **kwargs) -> Optional[Future]:
        if self._closed:
            logger.warning("Write queue closed, dropping %s", label)
            return None

        def job():
            try:
                return fn(*args, **kwargs)
            except Exception:
                logger.exception("Background write %s failed", label)
                return None

        future = self._executor.submit(job)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every job submitted so far has finished."""
        with self._lock:
            outstanding = list(self._pending)
        if outstanding:
            wait(outstanding, timeout=timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
