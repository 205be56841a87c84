"""Bounded-concurrency FIFO gate for expensive external calls.

At most ``max_concurrent`` submitted calls run at once; the rest wait in
submission order. Each caller receives its own ``Future`` carrying the result
or the exception of its call.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable


class RequestQueue:
    """FIFO work queue with a fixed number of execution slots."""

    def __init__(self, max_concurrent: int = 3, name: str = "request-queue") -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._pending = 0
        self._processing = 0

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Enqueue a call and return its future."""
        with self._lock:
            self._pending += 1
        return self._executor.submit(self._run, fn, args, kwargs)

    def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Enqueue a call and block until its result (or exception) is available."""
        return self.submit(fn, *args, **kwargs).result()

    def get_status(self) -> dict:
        with self._lock:
            return {
                "queue_length": self._pending,
                "processing": self._processing,
                "max_concurrent": self.max_concurrent,
            }

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        with self._lock:
            self._pending -= 1
            self._processing += 1
        try:
            return fn(*args, **kwargs)
        finally:
            with self._lock:
                self._processing -= 1
