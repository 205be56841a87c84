"""Country reference-data seeding from the World Bank country list.

Idempotent: countries already present are left untouched except for empty
``iso_code_3`` / ``region`` fields, which are filled in.
"""

from pathlib import Path

import requests

from src.ingestion.collectors.base_collector import BaseCollector, CollectStats, SourceResponseError
from src.ingestion.collectors.worldbank_collector import parse_page
from src.shared.config import Config
from src.shared.coordination.rate_limiter import RateLimiter
from src.storage.repository import CountryRepository
from src.storage.schema import COUNTRIES_CACHE_KEY
from src.storage.upsert import HistoryUpsertEngine

# Region id the World Bank uses for regional/income aggregates
AGGREGATE_REGION_ID = "NA"


class CountrySeeder(BaseCollector):
    """Seeds the Countries table with every real economy the World Bank lists."""

    SOURCE_NAME = "worldbank"
    PER_PAGE = 400

    def __init__(
        self,
        engine: HistoryUpsertEngine,
        limiter: RateLimiter,
        session: requests.Session | None = None,
        base_url: str | None = None,
        log_file: Path | None = None,
    ) -> None:
        super().__init__(
            engine=engine,
            limiter=limiter,
            session=session,
            log_file=log_file or Config.LOGS_DIR / "collectors" / "country_seeder.log",
        )
        self.base_url = (base_url or Config.WORLD_BANK_API_URL).rstrip("/")

    @property
    def name(self) -> str:
        return "countries"

    @property
    def cache_key(self) -> str:
        return COUNTRIES_CACHE_KEY

    def collect(self) -> CollectStats:
        """Fetch all country pages and insert-or-fill them in one durable write."""
        stats = CollectStats(source=self.name)
        countries = self.fetch_countries(stats)
        inserted, updated = CountryRepository(self.store).bulk_create(countries)
        stats.upserted = inserted + updated
        self.logger.info(
            "Seeded countries: %d fetched, %d inserted, %d filled", len(countries), inserted, updated
        )
        return stats

    def health_check(self) -> bool:
        try:
            response = self._session.get(
                f"{self.base_url}/country", params={"format": "json", "per_page": 1}, timeout=10
            )
            return response.ok
        except requests.exceptions.RequestException:
            return False

    def fetch_countries(self, stats: CollectStats | None = None) -> list[dict]:
        """All non-aggregate countries as ``{iso_code, iso_code_3, name, region}``.

        Raises:
            requests.exceptions.RetryError: A page kept failing with 429/5xx.
            SourceResponseError: Malformed payload.
        """
        stats = stats or CollectStats(source=self.name)
        url = f"{self.base_url}/country"
        countries: list[dict] = []
        page, pages = 1, 1

        while page <= pages:
            meta, records = parse_page(
                self._get_json(url, {"format": "json", "per_page": self.PER_PAGE, "page": page})
            )
            pages = int(meta.get("pages") or 0)
            if not records:
                break
            stats.pages += 1
            for raw in records:
                country = self._to_country(raw)
                if country is None:
                    stats.skipped += 1
                    continue
                countries.append(country)
            page += 1

        if not countries:
            raise SourceResponseError("World Bank country list is empty")
        return countries

    @staticmethod
    def _to_country(raw: dict) -> dict | None:
        region = raw.get("region") or {}
        if region.get("id") == AGGREGATE_REGION_ID:
            return None
        iso2 = (raw.get("iso2Code") or "").upper()
        iso3 = (raw.get("id") or "").upper()
        name = (raw.get("name") or "").strip()
        if len(iso2) != 2 or not iso2.isalpha() or not name:
            return None
        return {
            "iso_code": iso2,
            "iso_code_3": iso3 or None,
            "name": name,
            "region": (region.get("value") or "").strip() or None,
        }
