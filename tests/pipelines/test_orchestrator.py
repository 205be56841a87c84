"""Unit tests for the ingestion orchestrator."""

from unittest.mock import Mock

import pytest

from src.ingestion.collectors.base_collector import CollectStats
from src.pipelines.ingestion.orchestrator import (
    STATUS_FAILED,
    STATUS_OK,
    STATUS_SKIPPED,
    IngestionOrchestrator,
)
from src.pipelines.ingestion.scheduler import ManualScheduler
from src.shared.coordination.lock import FileLock
from src.storage.cache import TTLCache
from src.storage.db import RecordStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeFetcher:
    """Collector stand-in recording calls into a shared log."""

    def __init__(self, name, calls, cache_key=None, error=None, failed_pages=0, on_collect=None):
        self.name = name
        self.cache_key = cache_key
        self._calls = calls
        self._error = error
        self._failed_pages = failed_pages
        self._on_collect = on_collect

    def collect(self):
        self._calls.append(self.name)
        if self._on_collect:
            self._on_collect()
        if self._error:
            raise self._error
        return CollectStats(source=self.name, pages=1, upserted=3, failed_pages=self._failed_pages)


class StepClock:
    """Monotonic clock advancing a fixed step on every read."""

    def __init__(self, step=1.0):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


@pytest.fixture
def lock(tmp_path):
    return FileLock(tmp_path / ".scheduler.lock")


@pytest.fixture
def calls():
    return []


# ---------------------------------------------------------------------------
# run_cycle()
# ---------------------------------------------------------------------------


class TestRunCycle:
    """Sequential execution with failure isolation."""

    def test_runs_fetchers_in_order(self, store, lock, calls):
        fetchers = [FakeFetcher(n, calls) for n in ("countries", "open.er-api.com", "worldbank:gdp")]
        orchestrator = IngestionOrchestrator(store, fetchers, lock)

        report = orchestrator.run_cycle()

        assert calls == ["countries", "open.er-api.com", "worldbank:gdp"]
        assert [r.status for r in report.results] == [STATUS_OK] * 3
        assert report.ok is True
        assert report.partial is False

    def test_failing_fetcher_does_not_stop_cycle(self, store, lock, calls):
        fetchers = [
            FakeFetcher("a", calls),
            FakeFetcher("b", calls, error=RuntimeError("source down")),
            FakeFetcher("c", calls),
        ]
        orchestrator = IngestionOrchestrator(store, fetchers, lock)

        report = orchestrator.run_cycle()

        assert calls == ["a", "b", "c"]
        assert report.by_name("b").status == STATUS_FAILED
        assert report.by_name("b").error == "source down"
        assert report.by_name("c").status == STATUS_OK
        assert report.partial is True

    def test_fetchers_after_a_failure_persist_their_records(self, engine, seeded_store, lock, calls):
        def upsert(series, iso, value):
            def write():
                with seeded_store.transaction():
                    engine.apply(
                        series,
                        {"country_iso": iso, "rate": value, "effective_date": "2023"},
                        durable=False,
                    )

            return write

        fetchers = [
            FakeFetcher("worldbank:interest", calls, on_collect=upsert("interest", "DE", 1.5)),
            FakeFetcher("worldbank:inflation", calls, on_collect=upsert("inflation", "FR", 2.1)),
            FakeFetcher("worldbank:gdp", calls, error=RuntimeError("source down")),
            FakeFetcher("worldbank:exports", calls, on_collect=upsert("exports", "US", 11.0)),
            FakeFetcher("worldbank:fdi", calls, on_collect=upsert("fdi", "JP", 0.4)),
        ]
        orchestrator = IngestionOrchestrator(seeded_store, fetchers, lock)

        report = orchestrator.run_cycle()

        assert report.by_name("worldbank:gdp").status == STATUS_FAILED
        on_disk = RecordStore(seeded_store.path)
        assert [r["country_iso"] for r in on_disk.records("exports_rates")] == ["US"]
        assert [r["rate"] for r in on_disk.records("fdi_rates")] == [0.4]
        assert on_disk.count("interest_rates") == 1
        assert on_disk.count("inflation_rates") == 1
        assert on_disk.count("gdp_growth_rates") == 0

    def test_failed_pages_mark_cycle_partial(self, store, lock, calls):
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls, failed_pages=2)], lock)

        report = orchestrator.run_cycle()

        assert report.by_name("a").status == STATUS_OK
        assert report.by_name("a").degraded is True
        assert report.partial is True

    def test_cache_invalidated_after_each_fetcher(self, store, lock, calls):
        cache = TTLCache(ttl_seconds=3600)
        cache.set("rates:gdp", ["stale"])
        cache.set("rates:interest", ["stale"])
        cache.set("rates:inflation", ["untouched"])
        fetchers = [
            FakeFetcher("worldbank:gdp", calls, cache_key="rates:gdp"),
            FakeFetcher("worldbank:interest", calls, cache_key="rates:interest", error=ValueError("x")),
        ]
        orchestrator = IngestionOrchestrator(store, fetchers, lock, cache=cache)

        orchestrator.run_cycle()

        assert cache.get("rates:gdp") is None
        assert cache.get("rates:interest") is None
        assert cache.get("rates:inflation") == ["untouched"]

    def test_deadline_skips_remaining_fetchers(self, store, lock, calls):
        fetchers = [FakeFetcher(n, calls) for n in ("a", "b", "c", "d")]
        orchestrator = IngestionOrchestrator(
            store, fetchers, lock, cycle_timeout=2.5, clock=StepClock(step=1.0)
        )

        report = orchestrator.run_cycle()

        assert calls == ["a"]
        assert report.timed_out is True
        assert [r.status for r in report.results] == [
            STATUS_OK,
            STATUS_SKIPPED,
            STATUS_SKIPPED,
            STATUS_SKIPPED,
        ]

    def test_records_duration(self, store, lock, calls):
        orchestrator = IngestionOrchestrator(
            store, [FakeFetcher("a", calls)], lock, clock=StepClock(step=2.0)
        )

        report = orchestrator.run_cycle()

        assert report.results[0].duration == 2.0
        assert report.duration > 0


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------


class TestLockedCycle:
    """Cross-instance exclusion."""

    def test_runs_and_releases_lock(self, store, lock, calls):
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls)], lock)

        report = orchestrator.run_locked_cycle()

        assert report is not None
        assert calls == ["a"]
        assert lock.is_locked() is False

    def test_lock_held_elsewhere_skips_cycle(self, store, lock, calls, tmp_path):
        other_instance = FileLock(tmp_path / ".scheduler.lock")
        other_instance.acquire()
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls)], lock)

        assert orchestrator.run_locked_cycle() is None
        assert calls == []

    def test_lock_held_during_cycle(self, store, lock, calls):
        observed = []
        fetcher = FakeFetcher("a", calls, on_collect=lambda: observed.append(lock.is_locked()))
        orchestrator = IngestionOrchestrator(store, [fetcher], lock)

        orchestrator.run_locked_cycle()

        assert observed == [True]

    def test_lock_released_when_cycle_raises(self, store, lock):
        orchestrator = IngestionOrchestrator(store, [], lock)
        orchestrator.run_cycle = Mock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            orchestrator.run_locked_cycle()

        assert lock.is_locked() is False


# ---------------------------------------------------------------------------
# Startup and scheduling
# ---------------------------------------------------------------------------


class TestStartup:
    """Initial fetch when the store lacks data."""

    def _add(self, store, table, **fields):
        store.insert(table, lambda next_id: {"id": next_id, "country_iso": "DE", **fields})

    def test_has_data_requires_exchange_and_interest_or_inflation(self, store, lock):
        orchestrator = IngestionOrchestrator(store, [], lock)
        assert orchestrator.has_data() is False

        self._add(store, "interest_rates", rate=2.0)
        assert orchestrator.has_data() is False

        self._add(store, "exchange_rates", currency_code="EUR", rate_to_usd=0.9)
        assert orchestrator.has_data() is True

    def test_startup_fetch_when_empty(self, store, lock, calls):
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls)], lock)

        started = orchestrator.run_startup_check(background=True)
        orchestrator.wait_for_startup(timeout=5)

        assert started is True
        assert calls == ["a"]

    def test_startup_blocking(self, store, lock, calls):
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls)], lock)

        assert orchestrator.run_startup_check(background=False) is True
        assert calls == ["a"]

    def test_no_startup_fetch_when_data_present(self, store, lock, calls):
        self._add(store, "exchange_rates", currency_code="EUR", rate_to_usd=0.9)
        self._add(store, "inflation_rates", rate=2.4)
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls)], lock)

        assert orchestrator.run_startup_check() is False
        orchestrator.wait_for_startup(timeout=1)
        assert calls == []

    def test_schedule_registers_locked_cycle(self, store, lock, calls):
        scheduler = ManualScheduler()
        orchestrator = IngestionOrchestrator(store, [FakeFetcher("a", calls)], lock)
        orchestrator.schedule(scheduler)

        [report] = scheduler.trigger()

        assert calls == ["a"]
        assert report.ok is True
        assert lock.is_locked() is False
