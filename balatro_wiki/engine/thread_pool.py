"""Bounded worker pool used for concurrent page fetches."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock

MAX_WORKERS = 8


class ThreadPoolManager:
    """Lazily create one shared executor capped at ``MAX_WORKERS`` threads."""

    def __init__(self, workers: int = 6) -> None:
        self.workers = max(1, min(MAX_WORKERS, workers))
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def get(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="wiki-fetch"
                )
            return self._executor

    def shutdown(self, cancel_pending: bool = False) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=cancel_pending)

    def __enter__(self) -> "ThreadPoolManager":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(cancel_pending=exc_info[0] is not None)


__all__ = ["MAX_WORKERS", "ThreadPoolManager"]
