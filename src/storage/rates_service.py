"""Read facade used by the HTTP layer.

Serves countries, latest values and per-country histories from the record
store through a TTL cache. The orchestrator invalidates a series' cache entry
after its fetcher runs. Reads never raise ingestion errors, and every read
returns fresh row copies so callers cannot alter what the cache serves next.
"""

from pathlib import Path
from typing import Any, Callable

from src.shared.config import Config
from src.shared.utils import setup_logger
from src.storage.cache import TTLCache
from src.storage.db import Record, RecordStore
from src.storage.projection import LatestPolicy, LatestValueProjector
from src.storage.repository import CountryRepository
from src.storage.schema import COUNTRIES_CACHE_KEY, get_series


class RatesService:
    """Cached read access to the store plus an on-demand ingestion trigger."""

    def __init__(
        self,
        store: RecordStore,
        cache: TTLCache | None = None,
        orchestrator: Any | None = None,
        exchange_fetcher: Any | None = None,
        log_file: Path | None = None,
    ) -> None:
        self.store = store
        self.cache = cache or TTLCache(Config.CACHE_TTL)
        self.orchestrator = orchestrator
        self.exchange_fetcher = exchange_fetcher
        self.projector = LatestValueProjector(store)
        self.countries_repo = CountryRepository(store)
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    def countries(self) -> list[Record]:
        rows = self.cache.get(COUNTRIES_CACHE_KEY)
        if rows is None:
            rows = self.countries_repo.get_all()
            self.cache.set(COUNTRIES_CACHE_KEY, rows)
        return [dict(r) for r in rows]

    def latest(self, series_key: str, policy: LatestPolicy = "effective_date") -> list[Record]:
        """Current value per country for a series.

        When the exchange series is still empty, one on-demand fetch is
        attempted first; its failure is logged and an empty list served.

        Raises:
            KeyError: Unknown series.
        """
        spec = get_series(series_key)

        def compute() -> list[Record]:
            if spec.key == "exchange" and self.store.count(spec.table) == 0:
                self._fetch_exchange_on_demand()
            return self.projector.latest(spec, policy)

        return self._cached_view(spec.cache_key, policy, compute)

    def map_values(self, series_key: str) -> list[Record]:
        """Every known country with a value: real latest by ingestion time, else estimated."""
        spec = get_series(series_key)
        return self._cached_view(
            spec.cache_key,
            "map",
            lambda: self.projector.with_estimates(spec, self.projector.latest(spec, "updated_at")),
        )

    def historical(self, country_iso: str, series_key: str) -> list[Record]:
        """All observations of one country for a series, oldest first (not cached)."""
        return self.projector.historical(series_key, country_iso)

    def invalidate(self, series_key: str) -> None:
        """Drop every cached view of a series."""
        self.cache.delete(get_series(series_key).cache_key)

    def run_ingestion_cycle(self):
        """Run a locked ingestion cycle now; None when another instance holds the lock.

        Raises:
            RuntimeError: No orchestrator is wired in.
        """
        if self.orchestrator is None:
            raise RuntimeError("RatesService has no ingestion orchestrator configured")
        report = self.orchestrator.run_locked_cycle()
        self.cache.clear()
        return report

    def _cached_view(self, cache_key: str, view: str, compute: Callable[[], list[Record]]) -> list[Record]:
        # All views of a series share one cache entry
        views = self.cache.get(cache_key)
        if views is None:
            views = {}
            self.cache.set(cache_key, views)
        if view not in views:
            views[view] = compute()
        return [dict(r) for r in views[view]]

    def _fetch_exchange_on_demand(self) -> None:
        if self.exchange_fetcher is None:
            return
        try:
            self.exchange_fetcher.collect()
        except Exception as exc:
            self.logger.error("On-demand exchange rate fetch failed: %s", exc)
