"""Collectors package: one collector per external indicator source."""

from src.ingestion.collectors.base_collector import BaseCollector, CollectStats, SourceResponseError
from src.ingestion.collectors.exchange_rate_collector import ExchangeRateCollector
from src.ingestion.collectors.worldbank_collector import WorldBankCollector
from src.ingestion.collectors.worldbank_indicators import WORLD_BANK_INDICATORS, WorldBankIndicator

__all__ = [
    "BaseCollector",
    "CollectStats",
    "SourceResponseError",
    "ExchangeRateCollector",
    "WorldBankCollector",
    "WorldBankIndicator",
    "WORLD_BANK_INDICATORS",
]
