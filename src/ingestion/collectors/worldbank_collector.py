"""World Bank Indicator Collector (API v2).

One collector instance per indicator family (see worldbank_indicators.py).
Fetches every country's observations for the indicator in two passes:

    1. recent window      current_year - RECENT_YEARS .. current_year
    2. historical window  HISTORY_START_YEAR .. recent_start - 1

Each pass is paginated with the response's ``pages`` count. Transient
failures are retried by the session's transport; a page that still fails is
logged, counted and skipped, and the pass continues with the next page.

Response shape::

    [{"page": 1, "pages": 3, "per_page": 1000, "total": 2650},
     [{"countryiso3code": "DEU", "date": "2022", "value": 1.5, ...}, ...]]

API: https://datahelpdesk.worldbank.org/knowledgebase/articles/898581
"""

from datetime import date
from pathlib import Path
from typing import Any, Callable

import requests

from src.ingestion.collectors.base_collector import (
    BaseCollector,
    CollectStats,
    SourceResponseError,
)
from src.ingestion.collectors.worldbank_indicators import WorldBankIndicator
from src.shared.config import Config
from src.shared.coordination.rate_limiter import RateLimiter
from src.storage.repository import CountryRepository
from src.storage.schema import get_series
from src.storage.upsert import HistoryUpsertEngine


def parse_page(payload: Any) -> tuple[dict, list[dict]]:
    """Split a World Bank response into (meta, records).

    Raises:
        SourceResponseError: Error envelope or unexpected structure.
    """
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        raise SourceResponseError(f"Unexpected World Bank payload: {str(payload)[:200]}")

    meta = payload[0]
    if "message" in meta:
        raise SourceResponseError(f"World Bank error: {meta['message']}")

    records = payload[1] if len(payload) > 1 and payload[1] else []
    if not isinstance(records, list):
        raise SourceResponseError("World Bank records section is not a list")
    return meta, records


class WorldBankCollector(BaseCollector):
    """Collector for one World Bank indicator across all countries."""

    SOURCE_NAME = "worldbank"
    HEALTH_CHECK_TIMEOUT = 10

    def __init__(
        self,
        indicator: WorldBankIndicator,
        engine: HistoryUpsertEngine,
        limiter: RateLimiter,
        session: requests.Session | None = None,
        base_url: str | None = None,
        per_page: int | None = None,
        recent_years: int | None = None,
        history_start_year: int | None = None,
        today: Callable[[], date] = date.today,
        log_file: Path | None = None,
    ) -> None:
        super().__init__(
            engine=engine,
            limiter=limiter,
            session=session,
            log_file=log_file or Config.LOGS_DIR / "collectors" / "worldbank_collector.log",
        )
        self.indicator = indicator
        self._value_field = get_series(indicator.series).value_field
        self.base_url = (base_url or Config.WORLD_BANK_API_URL).rstrip("/")
        self.per_page = per_page or Config.WORLD_BANK_PER_PAGE
        self.recent_years = Config.RECENT_YEARS if recent_years is None else recent_years
        self.history_start_year = history_start_year or Config.HISTORY_START_YEAR
        self._today = today

    @property
    def name(self) -> str:
        return f"{self.SOURCE_NAME}:{self.indicator.series}"

    @property
    def cache_key(self) -> str:
        return get_series(self.indicator.series).cache_key

    # ------------------------------------------------------------------
    # BaseCollector interface
    # ------------------------------------------------------------------

    def collect(self) -> CollectStats:
        """Fetch the recent then the historical window and upsert every valid record."""
        stats = CollectStats(source=self.name)
        iso_map = CountryRepository(self.store).iso3_to_iso2()
        if not iso_map:
            self.logger.warning("No seeded countries; skipping %s", self.indicator.code)
            return stats

        for label, start, end in self.windows():
            if start > end:
                continue
            self.logger.info(
                "Fetching %s (%s) %s window %d-%d",
                self.indicator.code,
                self.indicator.series,
                label,
                start,
                end,
            )
            stats.merge(self._collect_window(start, end, iso_map))

        self.logger.info(
            "%s done: pages=%d failed_pages=%d upserted=%d skipped=%d",
            self.name,
            stats.pages,
            stats.failed_pages,
            stats.upserted,
            stats.skipped,
        )
        return stats

    def health_check(self) -> bool:
        """Check World Bank API availability with a one-row indicator query."""
        try:
            response = self._session.get(
                f"{self.base_url}/country/US/indicator/{self.indicator.code}",
                params={"format": "json", "per_page": 1},
                timeout=self.HEALTH_CHECK_TIMEOUT,
            )
            return response.ok
        except requests.exceptions.RequestException:
            return False

    def windows(self) -> list[tuple[str, int, int]]:
        """(label, start_year, end_year) for the recent and historical passes."""
        current = self._today().year
        recent_start = current - self.recent_years
        return [
            ("recent", recent_start, current),
            ("historical", self.history_start_year, recent_start - 1),
        ]

    # ------------------------------------------------------------------
    # Private: pagination and record mapping
    # ------------------------------------------------------------------

    def _collect_window(self, start: int, end: int, iso_map: dict[str, str]) -> CollectStats:
        stats = CollectStats(source=self.name)
        url = f"{self.base_url}/country/all/indicator/{self.indicator.code}"
        page, pages = 1, 1

        while page <= pages:
            params = {
                "format": "json",
                "per_page": self.per_page,
                "date": f"{start}:{end}",
                "page": page,
            }
            try:
                meta, records = parse_page(self._get_json(url, params))
            except requests.exceptions.RetryError as exc:
                self.logger.error(
                    "%s page %d abandoned, retries exhausted: %s", self.indicator.code, page, exc
                )
                stats.failed_pages += 1
                page += 1
                continue
            except (requests.exceptions.RequestException, SourceResponseError) as exc:
                self.logger.error("%s page %d failed: %s", self.indicator.code, page, exc)
                stats.failed_pages += 1
                page += 1
                continue

            pages = int(meta.get("pages") or 0)
            if not records:
                break

            stats.pages += 1
            with self.store.transaction():
                for raw in records:
                    observation = self._to_observation(raw, iso_map)
                    if observation is None:
                        stats.skipped += 1
                        continue
                    try:
                        self.engine.apply(self.indicator.series, observation, durable=False)
                    except ValueError as exc:
                        self.logger.debug("Skipping record %s: %s", raw, exc)
                        stats.skipped += 1
                        continue
                    stats.upserted += 1
            page += 1

        return stats

    def _to_observation(self, raw: dict, iso_map: dict[str, str]) -> dict | None:
        """Map a World Bank record to an observation, or None if unusable."""
        value = raw.get("value")
        if value is None or isinstance(value, bool):
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None

        iso2 = iso_map.get((raw.get("countryiso3code") or "").upper())
        if not iso2:
            return None

        return {
            "country_iso": iso2,
            self._value_field: value,
            "source": self.SOURCE_NAME,
            "effective_date": raw.get("date"),
        }
