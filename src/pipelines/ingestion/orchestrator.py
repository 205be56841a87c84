"""
Ingestion Orchestrator

Runs one ingestion cycle: every registered fetcher, strictly one after the
other. A fetcher that raises is logged and recorded; the remaining fetchers
still run. After each fetcher its read-cache entry is invalidated.

Scheduled cycles are guarded by the cross-instance FileLock so that only one
service instance ingests at a time.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from src.ingestion.collectors.base_collector import BaseCollector, CollectStats
from src.pipelines.ingestion.scheduler import CycleScheduler
from src.shared.config import Config
from src.shared.coordination.lock import FileLock
from src.shared.utils import setup_logger, utc_now
from src.storage.cache import TTLCache
from src.storage.db import RecordStore

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass
class FetcherResult:
    """Outcome of one fetcher within a cycle."""

    name: str
    status: str
    duration: float = 0.0
    stats: CollectStats | None = None
    error: str | None = None

    @property
    def degraded(self) -> bool:
        """Fetcher did not fully succeed (failed, skipped, or lost pages)."""
        if self.status != STATUS_OK:
            return True
        return bool(self.stats and self.stats.failed_pages)


@dataclass
class CycleReport:
    """Summary of one ingestion cycle."""

    started_at: datetime
    results: list[FetcherResult] = field(default_factory=list)
    duration: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not any(r.degraded for r in self.results)

    @property
    def partial(self) -> bool:
        return not self.ok

    def by_name(self, name: str) -> FetcherResult | None:
        return next((r for r in self.results if r.name == name), None)


class IngestionOrchestrator:
    """Sequential, failure-isolated runner for all fetchers."""

    def __init__(
        self,
        store: RecordStore,
        fetchers: Sequence[BaseCollector],
        lock: FileLock,
        cache: TTLCache | None = None,
        cycle_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        log_file: Path | None = None,
    ) -> None:
        self.store = store
        self.fetchers = list(fetchers)
        self.lock = lock
        self.cache = cache
        self.cycle_timeout = cycle_timeout or Config.CYCLE_TIMEOUT
        self._clock = clock
        self.logger = setup_logger(
            self.__class__.__name__,
            log_file or Config.LOGS_DIR / "pipelines" / "ingestion.log",
            Config.LOG_LEVEL,
        )
        self._startup_thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        """Run every fetcher once, in order, isolating failures.

        The cycle deadline is checked before each fetcher; once it has passed,
        the remaining fetchers are recorded as skipped. A running fetcher is
        never interrupted.
        """
        report = CycleReport(started_at=utc_now())
        cycle_start = self._clock()
        deadline = cycle_start + self.cycle_timeout
        self.logger.info("Ingestion cycle started (%d fetchers)", len(self.fetchers))

        for fetcher in self.fetchers:
            if self._clock() >= deadline:
                report.timed_out = True
                self.logger.warning("Cycle deadline reached, skipping %s", fetcher.name)
                report.results.append(FetcherResult(name=fetcher.name, status=STATUS_SKIPPED))
                continue
            report.results.append(self._run_fetcher(fetcher))

        report.duration = self._clock() - cycle_start
        failed = [r.name for r in report.results if r.degraded]
        if failed:
            self.logger.warning(
                "Ingestion cycle finished in %.1fs (partial; degraded: %s)",
                report.duration,
                ", ".join(failed),
            )
        else:
            self.logger.info("Ingestion cycle finished in %.1fs", report.duration)
        return report

    def run_locked_cycle(self) -> CycleReport | None:
        """Run a cycle if this instance can take the cross-instance lock.

        Returns:
            The cycle report, or None when another instance holds the lock.
        """
        if not self.lock.acquire():
            self.logger.info("Another instance is ingesting; skipping this cycle")
            return None
        try:
            return self.run_cycle()
        finally:
            self.lock.release()

    # ------------------------------------------------------------------
    # Startup and scheduling
    # ------------------------------------------------------------------

    def has_data(self) -> bool:
        """Exchange rates plus interest or inflation data are present."""
        return self.store.count("exchange_rates") > 0 and (
            self.store.count("interest_rates") > 0 or self.store.count("inflation_rates") > 0
        )

    def run_startup_check(self, background: bool = True) -> bool:
        """Trigger an initial locked cycle when the store lacks data.

        Args:
            background: Run the cycle on a daemon thread instead of blocking.

        Returns:
            True if an initial fetch was started.
        """
        if self.has_data():
            self.logger.info(
                "Store has data, skipping initial fetch (exchange=%d interest=%d inflation=%d)",
                self.store.count("exchange_rates"),
                self.store.count("interest_rates"),
                self.store.count("inflation_rates"),
            )
            return False

        self.logger.info("Store is empty or missing data, starting initial fetch")
        if not background:
            self.run_locked_cycle()
            return True

        self._startup_thread = threading.Thread(
            target=self._startup_fetch, name="startup-ingestion", daemon=True
        )
        self._startup_thread.start()
        return True

    def wait_for_startup(self, timeout: float | None = None) -> None:
        if self._startup_thread is not None:
            self._startup_thread.join(timeout)

    def schedule(self, scheduler: CycleScheduler) -> None:
        """Register the locked cycle as the scheduler's recurring job."""
        scheduler.register(self.run_locked_cycle)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run_fetcher(self, fetcher: BaseCollector) -> FetcherResult:
        start = self._clock()
        try:
            stats = fetcher.collect()
            result = FetcherResult(name=fetcher.name, status=STATUS_OK, stats=stats)
        except Exception as exc:
            self.logger.exception("Fetcher %s failed", fetcher.name)
            result = FetcherResult(name=fetcher.name, status=STATUS_FAILED, error=str(exc))
        finally:
            if self.cache is not None and fetcher.cache_key:
                self.cache.delete(fetcher.cache_key)

        result.duration = self._clock() - start
        self.logger.info("%s: %s in %.1fs", fetcher.name, result.status, result.duration)
        return result

    def _startup_fetch(self) -> None:
        try:
            report = self.run_locked_cycle()
        except Exception:
            self.logger.exception("Initial data fetch failed; scheduled cycles will retry")
            return
        if report is not None:
            self.logger.info("Initial data fetch completed (partial=%s)", report.partial)
