"""Unit tests for the World Bank country seeder."""

from unittest.mock import Mock

import pytest

from src.ingestion.collectors.base_collector import SourceResponseError
from src.ingestion.country_seeder import CountrySeeder
from src.storage.repository import CountryRepository
from src.storage.upsert import HistoryUpsertEngine


def _country(iso3, iso2, name, region_id, region):
    return {
        "id": iso3,
        "iso2Code": iso2,
        "name": name,
        "region": {"id": region_id, "iso2code": "", "value": region},
    }


PAGE_1 = [
    {"page": 1, "pages": 2, "per_page": 400, "total": 4},
    [
        _country("DEU", "DE", "Germany", "ECS", "Europe & Central Asia"),
        _country("EUU", "EU", "European Union", "NA", "Aggregates"),
    ],
]
PAGE_2 = [
    {"page": 2, "pages": 2, "per_page": 400, "total": 4},
    [
        _country("KEN", "KE", "Kenya", "SSF", "Sub-Saharan Africa "),
        _country("XKX", "", "Kosovo", "ECS", "Europe & Central Asia"),
    ],
]


def _make_response(payload):
    response = Mock()
    response.ok = True
    response.json.return_value = payload
    return response


@pytest.fixture
def make_seeder(store, clock, no_wait_limiter):
    def factory(*payloads):
        session = Mock()
        session.get.side_effect = [_make_response(p) for p in payloads]
        seeder = CountrySeeder(
            HistoryUpsertEngine(store, clock=clock),
            no_wait_limiter,
            session=session,
            base_url="https://api.worldbank.test/v2",
        )
        return seeder, session

    return factory


class TestCountrySeeder:
    """Seeding the countries table."""

    def test_seeds_real_countries_only(self, make_seeder, store):
        seeder, session = make_seeder(PAGE_1, PAGE_2)

        stats = seeder.collect()

        repo = CountryRepository(store)
        assert [c["iso_code"] for c in repo.get_all()] == ["DE", "KE"]
        assert repo.get_by_iso("KE")["region"] == "Sub-Saharan Africa"
        assert repo.get_by_iso("DE")["iso_code_3"] == "DEU"
        assert stats.upserted == 2
        assert stats.skipped == 2
        assert stats.pages == 2
        assert session.get.call_args_list[1].kwargs["params"]["page"] == 2

    def test_reseed_is_idempotent(self, make_seeder, store):
        seeder, _ = make_seeder(PAGE_1, PAGE_2, PAGE_1, PAGE_2)

        seeder.collect()
        stats = seeder.collect()

        assert store.count("countries") == 2
        assert stats.upserted == 0

    def test_empty_country_list_raises(self, make_seeder):
        seeder, _ = make_seeder([{"page": 1, "pages": 0}, None])

        with pytest.raises(SourceResponseError):
            seeder.collect()

    def test_identity(self, make_seeder):
        seeder, _ = make_seeder()

        assert seeder.name == "countries"
        assert seeder.cache_key == "countries:all"
