"""Record store, repositories and read-side projections."""

from src.storage.db import RecordStore
from src.storage.projection import LatestValueProjector
from src.storage.repository import CountryRepository, SeriesRepository
from src.storage.schema import SERIES, SeriesSpec, empty_snapshot, get_series
from src.storage.upsert import HistoryUpsertEngine

__all__ = [
    "RecordStore",
    "LatestValueProjector",
    "CountryRepository",
    "SeriesRepository",
    "SERIES",
    "SeriesSpec",
    "empty_snapshot",
    "get_series",
    "HistoryUpsertEngine",
]
