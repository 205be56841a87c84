"""Minimum-interval rate limiter.

One instance per external source. Callers invoke ``wait()`` before each
request; successive calls are spaced by at least ``min_delay`` seconds.
Thread-safe: concurrent callers are serialized on an internal lock so each
one observes the interval relative to the previous caller.
"""

import threading
import time
from typing import Callable

from src.shared.config import Config
from src.shared.utils import setup_logger


class RateLimiter:
    """Blocks callers so that consecutive calls are at least ``min_delay`` apart."""

    def __init__(
        self,
        name: str,
        min_delay: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_delay < 0:
            raise ValueError("min_delay cannot be negative")
        self.name = name
        self.min_delay = min_delay
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: float | None = None
        self.logger = setup_logger(f"{self.__class__.__name__}.{name}", level=Config.LOG_LEVEL)

    def wait(self) -> float:
        """Block until a call is allowed, then record it.

        Returns:
            Seconds actually waited (0.0 when the call was immediately allowed).
        """
        with self._lock:
            waited = 0.0
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_delay:
                    waited = self.min_delay - elapsed
                    self.logger.debug("%s: waiting %.3fs", self.name, waited)
                    self._sleep(waited)
            self._last_call = self._clock()
            return waited

    def get_status(self) -> dict:
        """Snapshot of the limiter state."""
        with self._lock:
            if self._last_call is None:
                since_last = None
                can_call = True
            else:
                since_last = self._clock() - self._last_call
                can_call = since_last >= self.min_delay
            return {
                "name": self.name,
                "min_delay": self.min_delay,
                "time_since_last_call": since_last,
                "can_call_now": can_call,
            }
