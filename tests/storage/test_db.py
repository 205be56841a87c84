"""Unit tests for the JSON snapshot record store."""

import json
from unittest.mock import patch

import pytest

from src.storage.db import RecordStore
from src.storage.projection import LatestValueProjector
from src.storage.schema import SERIES, empty_snapshot
from src.storage.upsert import HistoryUpsertEngine

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _insert(store: RecordStore, table: str, durable: bool = True, **fields):
    return store.insert(table, lambda next_id: {"id": next_id, **fields}, durable=durable)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    """Snapshot loading, merging and corruption recovery."""

    def test_missing_file_creates_empty_snapshot(self, tmp_path):
        path = tmp_path / "db.json"
        store = RecordStore(path)

        assert path.exists()
        on_disk = json.loads(path.read_text())
        assert on_disk == empty_snapshot()
        assert set(store.tables()) == {"countries", *(s.table for s in SERIES.values())}

    def test_corrupt_file_is_moved_aside_and_reset(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text("{not valid json")

        store = RecordStore(path)

        assert store.records("countries") == []
        assert json.loads(path.read_text()) == empty_snapshot()
        corrupt = tmp_path / "db.json.corrupt"
        assert corrupt.read_text() == "{not valid json"

    def test_non_object_root_is_reset(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text("[1, 2, 3]")

        store = RecordStore(path)

        assert store.records("interest_rates") == []
        assert (tmp_path / "db.json.corrupt").exists()

    def test_older_snapshot_is_merged_with_schema(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text(
            json.dumps(
                {
                    "countries": [{"id": 1, "iso_code": "DE", "name": "Germany"}],
                    "interest_rates": [{"id": 1, "country_iso": "DE", "rate": 1.5}],
                    "legacy_table": [{"x": 1}],
                }
            )
        )

        store = RecordStore(path)

        assert store.records("interest_rates")[0]["rate"] == 1.5
        assert store.records("exports_rates") == []
        assert store.records("legacy_table") == [{"x": 1}]

    def test_non_array_series_is_reset(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text(json.dumps({"interest_rates": {"oops": True}}))

        store = RecordStore(path)

        assert store.records("interest_rates") == []

    def test_malformed_entries_are_dropped(self, tmp_path, clock):
        path = tmp_path / "db.json"
        path.write_text(
            json.dumps(
                {
                    "countries": [
                        {"id": 1, "iso_code": "DE", "name": "Germany", "region": "Europe"},
                        "FR",
                    ],
                    "interest_rates": [
                        None,
                        "x",
                        {"id": "7", "country_iso": "FR", "rate": 9.9},
                        {"id": 2, "rate": 9.9},
                        {"id": 3, "country_iso": "FR", "rate": 9.9, "effective_date": 2020},
                        {"id": 1, "country_iso": "DE", "rate": 1.5, "effective_date": "2022"},
                    ],
                }
            )
        )

        store = RecordStore(path)

        assert store.count("countries") == 1
        assert store.count("interest_rates") == 1
        latest = LatestValueProjector(store).latest("interest")
        assert [(r["country_iso"], r["value"]) for r in latest] == [("DE", 1.5)]

        engine = HistoryUpsertEngine(store, clock=clock)
        engine.apply("interest", {"country_iso": "DE", "rate": 2.0, "effective_date": "2023"})
        assert store.count("interest_rates") == 2
        assert max(r["id"] for r in store.records("interest_rates")) == 2


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    """Query shapes: all, by field match, by id."""

    def test_where_and_by_id(self, store):
        _insert(store, "interest_rates", country_iso="DE", rate=1.5)
        _insert(store, "interest_rates", country_iso="FR", rate=2.0)

        assert [r["rate"] for r in store.where("interest_rates", country_iso="FR")] == [2.0]
        assert store.by_id("interest_rates", 1)["country_iso"] == "DE"
        assert store.by_id("interest_rates", 99) is None

    def test_reads_return_copies(self, store):
        _insert(store, "interest_rates", country_iso="DE", rate=1.5)

        store.records("interest_rates")[0]["rate"] = 99.0

        assert store.records("interest_rates")[0]["rate"] == 1.5

    def test_unknown_table_raises(self, store):
        with pytest.raises(KeyError, match="Unknown table"):
            store.records("nope")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestWrites:
    """Durable writes, transactions and atomic persistence."""

    def test_durable_insert_is_persisted(self, store):
        _insert(store, "gdp_growth_rates", country_iso="DE", rate=0.3)

        on_disk = json.loads(store.path.read_text())
        assert on_disk["gdp_growth_rates"] == [{"id": 1, "country_iso": "DE", "rate": 0.3}]

    def test_upsert_replaces_matching_record(self, store):
        _insert(store, "interest_rates", country_iso="DE", rate=1.5)

        stored = store.upsert(
            "interest_rates",
            lambda r: r["country_iso"] == "DE",
            lambda existing, next_id: {**existing, "rate": 1.8},
        )

        assert stored == {"id": 1, "country_iso": "DE", "rate": 1.8}
        assert store.count("interest_rates") == 1

    def test_upsert_appends_with_next_id(self, store):
        _insert(store, "interest_rates", country_iso="DE", rate=1.5)

        stored = store.upsert(
            "interest_rates",
            lambda r: r["country_iso"] == "FR",
            lambda existing, next_id: {"id": next_id, "country_iso": "FR", "rate": 2.0},
        )

        assert stored["id"] == 2
        assert store.count("interest_rates") == 2

    def test_transaction_writes_snapshot_once(self, store):
        with patch.object(store, "save_snapshot", wraps=store.save_snapshot) as save:
            with store.transaction():
                for iso in ("DE", "FR", "US"):
                    _insert(store, "interest_rates", country_iso=iso, rate=1.0)
                assert save.call_count == 0

        assert save.call_count == 1
        assert len(json.loads(store.path.read_text())["interest_rates"]) == 3

    def test_nested_transaction_persists_at_outer_exit(self, store):
        with patch.object(store, "save_snapshot", wraps=store.save_snapshot) as save:
            with store.transaction():
                with store.transaction():
                    _insert(store, "interest_rates", country_iso="DE", rate=1.0)
                assert save.call_count == 0

        assert save.call_count == 1

    def test_transaction_without_changes_does_not_write(self, store):
        with patch.object(store, "save_snapshot") as save:
            with store.transaction():
                store.records("interest_rates")

        save.assert_not_called()

    def test_no_temp_files_left_behind(self, store):
        for iso in ("DE", "FR"):
            _insert(store, "interest_rates", country_iso=iso, rate=1.0)

        assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]

    def test_reload_reads_persisted_state(self, store):
        _insert(store, "interest_rates", country_iso="DE", rate=1.5)

        reopened = RecordStore(store.path)

        assert reopened.records("interest_rates") == store.records("interest_rates")
