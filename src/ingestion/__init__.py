"""Data ingestion module - collectors, reference tables and country seeding."""

from src.ingestion.collectors import (
    BaseCollector,
    CollectStats,
    ExchangeRateCollector,
    WorldBankCollector,
)
from src.ingestion.country_seeder import CountrySeeder

__all__ = [
    "BaseCollector",
    "CollectStats",
    "CountrySeeder",
    "ExchangeRateCollector",
    "WorldBankCollector",
]
