"""Cross-instance lock backed by an exclusively created file.

Several service instances share the same data directory; only the one that
creates the lock file runs the scheduled ingestion cycle. A lock older than
``expiry`` seconds is considered stale (its holder crashed) and is reclaimed.
Reclaiming happens under a second exclusive guard file and re-checks the
lock there, so a lock freshly taken by another instance is never deleted.
Acquisition never blocks.
"""

import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from src.shared.config import Config
from src.shared.utils import setup_logger


class FileLock:
    """Non-blocking, expiring lock on a single file path."""

    def __init__(
        self,
        path: Path,
        expiry: float = 3600.0,
        clock: Callable[[], float] = time.time,
        log_file: Path | None = None,
    ) -> None:
        self.path = Path(path)
        self.expiry = expiry
        self._clock = clock
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    def acquire(self) -> bool:
        """Try to take the lock.

        Returns:
            True if this caller now holds the lock, False if another live holder has it.
        """
        if self._try_create():
            return True

        if self._is_stale():
            return self._reclaim()

        self.logger.info("Lock %s is held by another instance", self.path)
        return False

    def release(self) -> None:
        """Drop the lock. Releasing an absent lock is a no-op."""
        self._remove()

    def is_locked(self) -> bool:
        """True when a non-expired lock file exists."""
        return self.path.exists() and not self._is_stale()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """Context manager yielding whether the lock was acquired.

        The lock is released on exit only if it was acquired here.
        """
        acquired = self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _try_create(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(repr(self._clock()))
        self.logger.debug("Acquired lock %s", self.path)
        return True

    def _reclaim(self) -> bool:
        guard = self.path.with_name(self.path.name + ".reclaim")
        try:
            fd = os.open(guard, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if self._is_stale(guard):
                # Left by a reclaimer that crashed
                guard.unlink(missing_ok=True)
            self.logger.info("Lock %s is being reclaimed by another instance", self.path)
            return False

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(repr(self._clock()))
            if not self._is_stale():
                self.logger.info("Lock %s was taken over by another instance", self.path)
                return False
            self.logger.warning("Removing stale lock %s", self.path)
            self._remove()
            return self._try_create()
        finally:
            guard.unlink(missing_ok=True)

    def _created_at(self, path: Path) -> float | None:
        try:
            text = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        try:
            return float(text)
        except ValueError:
            # Unreadable content: fall back to the file's modification time
            try:
                return path.stat().st_mtime
            except FileNotFoundError:
                return None

    def _is_stale(self, path: Path | None = None) -> bool:
        created = self._created_at(path or self.path)
        if created is None:
            return False
        return self._clock() - created > self.expiry

    def _remove(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
