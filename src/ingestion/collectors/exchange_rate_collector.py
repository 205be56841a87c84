"""Exchange Rate Collector (open.er-api.com, base USD).

A single request returns a flat currency -> rate map. Each currency fans out
to every country using it (see reference/currency_countries.py); each
country that exists in the store gets its own observation with identity
(country_iso, currency_code).

Response shape::

    {"result": "success", "base_code": "USD",
     "time_last_update_utc": "Sat, 18 Oct 2026 00:02:31 +0000",
     "rates": {"USD": 1, "EUR": 0.92, ...}}
"""

from datetime import date
from pathlib import Path
from typing import Callable

import requests

from src.ingestion.collectors.base_collector import (
    BaseCollector,
    CollectStats,
    SourceResponseError,
)
from src.ingestion.reference.currency_countries import countries_for_currency
from src.shared.config import Config
from src.shared.coordination.rate_limiter import RateLimiter
from src.shared.utils import normalize_effective_date, utc_now
from src.storage.repository import CountryRepository
from src.storage.schema import get_series
from src.storage.upsert import HistoryUpsertEngine


class ExchangeRateCollector(BaseCollector):
    """Collector for USD-based exchange rates of every mapped currency."""

    SOURCE_NAME = "open.er-api.com"
    SERIES = "exchange"
    HEALTH_CHECK_TIMEOUT = 10

    def __init__(
        self,
        engine: HistoryUpsertEngine,
        limiter: RateLimiter,
        session: requests.Session | None = None,
        api_url: str | None = None,
        today: Callable[[], date] = lambda: utc_now().date(),
        log_file: Path | None = None,
    ) -> None:
        super().__init__(
            engine=engine,
            limiter=limiter,
            session=session,
            log_file=log_file or Config.LOGS_DIR / "collectors" / "exchange_rate_collector.log",
        )
        self.api_url = api_url or Config.EXCHANGE_RATE_API_URL
        self._today = today

    @property
    def cache_key(self) -> str:
        return get_series(self.SERIES).cache_key

    # ------------------------------------------------------------------
    # BaseCollector interface
    # ------------------------------------------------------------------

    def collect(self) -> CollectStats:
        """Fetch the rate map once and upsert one observation per mapped country.

        Raises:
            SourceResponseError: The feed reports an error or has no rates.
            requests.exceptions.RetryError: 429/5xx on every transport attempt.
        """
        stats = CollectStats(source=self.name)
        payload = self._get_json(self.api_url)
        rates = self._parse(payload)
        stats.pages = 1
        effective_date = self._effective_date(payload)

        countries = CountryRepository(self.store)
        with self.store.transaction():
            for currency_code, rate in rates.items():
                for iso in countries_for_currency(currency_code):
                    if countries.get_by_iso(iso) is None:
                        self.logger.warning("Country %s not found in store, skipping", iso)
                        stats.skipped += 1
                        continue
                    try:
                        self.engine.apply(
                            self.SERIES,
                            {
                                "country_iso": iso,
                                "currency_code": currency_code,
                                "rate_to_usd": rate,
                                "source": self.SOURCE_NAME,
                                "effective_date": effective_date,
                            },
                            durable=False,
                        )
                    except ValueError as exc:
                        self.logger.warning("Skipping %s/%s: %s", iso, currency_code, exc)
                        stats.skipped += 1
                        continue
                    stats.upserted += 1

        self.logger.info(
            "Exchange rates updated: %d currencies, %d observations, %d skipped",
            len(rates),
            stats.upserted,
            stats.skipped,
        )
        return stats

    def health_check(self) -> bool:
        try:
            response = self._session.get(self.api_url, timeout=self.HEALTH_CHECK_TIMEOUT)
            return response.ok
        except requests.exceptions.RequestException:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(payload: object) -> dict[str, float]:
        if not isinstance(payload, dict):
            raise SourceResponseError("Exchange rate payload is not an object")
        if payload.get("result") == "error":
            raise SourceResponseError(
                f"Exchange rate API error: {payload.get('error-type', 'unknown')}"
            )
        rates = payload.get("rates")
        if not isinstance(rates, dict) or not rates:
            raise SourceResponseError("Invalid API response: rates not found")

        rates = dict(rates)
        # Base currency is sometimes omitted
        if rates.get("USD") is None:
            rates["USD"] = 1
        return rates

    def _effective_date(self, payload: dict) -> str:
        stamp = payload.get("time_last_update_utc")
        if stamp:
            try:
                return normalize_effective_date(stamp)
            except ValueError:
                self.logger.warning("Unparseable update time %r, using today", stamp)
        return self._today().isoformat()
