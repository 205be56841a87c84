"""
Root pytest configuration.

Redirects every configured path into the test's tmp_path and provides an
isolated record store, seeded countries and deterministic clocks so no test
touches the repository's data/ or logs/ directories or sleeps for real.
"""

from datetime import datetime, timedelta

import pytest
import pytz

from src.shared.coordination.rate_limiter import RateLimiter
from src.storage.db import RecordStore
from src.storage.repository import CountryRepository
from src.storage.upsert import HistoryUpsertEngine


class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def tick(self, seconds: float = 1.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


SAMPLE_COUNTRIES = [
    {"iso_code": "DE", "iso_code_3": "DEU", "name": "Germany", "region": "Europe & Central Asia"},
    {"iso_code": "FR", "iso_code_3": "FRA", "name": "France", "region": "Europe & Central Asia"},
    {"iso_code": "US", "iso_code_3": "USA", "name": "United States", "region": "North America"},
    {"iso_code": "JP", "iso_code_3": "JPN", "name": "Japan", "region": "East Asia & Pacific"},
    {"iso_code": "BR", "iso_code_3": "BRA", "name": "Brazil", "region": "Latin America & Caribbean"},
]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point Config paths at tmp_path."""
    data_dir = tmp_path / "data"
    monkeypatch.setattr("src.shared.config.Config.DATA_DIR", data_dir)
    monkeypatch.setattr("src.shared.config.Config.LOGS_DIR", tmp_path / "logs")
    monkeypatch.setattr("src.shared.config.Config.SNAPSHOT_PATH", data_dir / "economic_data.json")
    monkeypatch.setattr("src.shared.config.Config.LOCK_PATH", data_dir / ".scheduler.lock")
    return data_dir


@pytest.fixture
def sample_countries():
    return [dict(c) for c in SAMPLE_COUNTRIES]


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, tzinfo=pytz.UTC))


@pytest.fixture
def store(tmp_path):
    return RecordStore(tmp_path / "store" / "economic_data.json")


@pytest.fixture
def seeded_store(store, sample_countries):
    CountryRepository(store).bulk_create(sample_countries)
    return store


@pytest.fixture
def engine(seeded_store, clock):
    return HistoryUpsertEngine(seeded_store, clock=clock)


@pytest.fixture
def no_wait_limiter():
    return RateLimiter("test", 0.0)
