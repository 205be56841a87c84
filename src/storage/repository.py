"""Typed repositories over the record store.

Each repository exposes only the query shapes the engine needs: all records,
records by identity, record by id, and the latest record for an identity.
"""

from typing import Any, Iterable

from src.shared.utils import isoformat_utc, utc_now
from src.storage.db import Record, RecordStore
from src.storage.schema import COUNTRIES_TABLE, SeriesSpec, get_series


def sort_key_effective(record: Record) -> str:
    """``effective_date`` when present, else ``updated_at``."""
    return record.get("effective_date") or record.get("updated_at") or ""


class SeriesRepository:
    """Access to one observation series."""

    def __init__(self, store: RecordStore, series: SeriesSpec | str) -> None:
        self.store = store
        self.spec = get_series(series) if isinstance(series, str) else series

    def find_all(self) -> list[Record]:
        return self.store.records(self.spec.table)

    def find_by_identity(self, **identity: Any) -> list[Record]:
        self._check_identity(identity)
        return self.store.where(self.spec.table, **identity)

    def find_by_id(self, record_id: int) -> Record | None:
        return self.store.by_id(self.spec.table, record_id)

    def find_latest(self, **identity: Any) -> Record | None:
        """Most recent record for an identity by effective date (ties: first stored)."""
        rows = self.find_by_identity(**identity)
        if not rows:
            return None
        return sorted(rows, key=sort_key_effective, reverse=True)[0]

    def append(self, record: Record, durable: bool = True) -> Record:
        """Insert a new record with a fresh id and ``updated_at``."""
        now = isoformat_utc(utc_now())

        def build(next_id: int) -> Record:
            return {**record, "id": next_id, "updated_at": record.get("updated_at") or now}

        return self.store.insert(self.spec.table, build, durable=durable)

    def update(self, record_id: int, fields: dict, durable: bool = True) -> Record:
        """Replace fields of an existing record, keeping its id.

        Raises:
            KeyError: If no record has ``record_id``.
        """
        if self.find_by_id(record_id) is None:
            raise KeyError(f"{self.spec.table}: no record with id {record_id}")

        def build(existing: Record | None, _next_id: int) -> Record:
            return {**existing, **fields, "id": record_id}

        return self.store.upsert(
            self.spec.table, lambda r: r.get("id") == record_id, build, durable=durable
        )

    def _check_identity(self, identity: dict) -> None:
        unknown = set(identity) - set(self.spec.identity_fields)
        if unknown:
            raise ValueError(
                f"{self.spec.key}: {sorted(unknown)} are not identity fields "
                f"{list(self.spec.identity_fields)}"
            )


class CountryRepository:
    """Reference table of countries, keyed by ISO-3166 alpha-2 code."""

    FIELDS = ("iso_code", "iso_code_3", "name", "region")

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def get_all(self) -> list[Record]:
        return sorted(self.store.records(COUNTRIES_TABLE), key=lambda c: c.get("name") or "")

    def get_by_iso(self, iso_code: str) -> Record | None:
        rows = self.store.where(COUNTRIES_TABLE, iso_code=iso_code.upper())
        return rows[0] if rows else None

    def get_by_iso3(self, iso_code_3: str) -> Record | None:
        rows = self.store.where(COUNTRIES_TABLE, iso_code_3=iso_code_3.upper())
        return rows[0] if rows else None

    def iso3_to_iso2(self) -> dict[str, str]:
        """Mapping of alpha-3 to alpha-2 codes for countries that have both."""
        return {
            c["iso_code_3"]: c["iso_code"]
            for c in self.store.records(COUNTRIES_TABLE)
            if c.get("iso_code_3") and c.get("iso_code")
        }

    def names(self) -> dict[str, str]:
        return {c["iso_code"]: c.get("name") for c in self.store.records(COUNTRIES_TABLE)}

    def bulk_create(self, countries: Iterable[dict]) -> tuple[int, int]:
        """Insert countries that are not present yet; fill empty fields on existing ones.

        Existing non-empty fields are never overwritten. All changes are
        persisted in one durable write.

        Returns:
            (inserted, updated) counts.
        """
        inserted = updated = 0
        now = isoformat_utc(utc_now())

        with self.store.transaction():
            for country in countries:
                iso = (country.get("iso_code") or "").upper()
                if len(iso) != 2 or not country.get("name"):
                    continue
                incoming = {k: country.get(k) for k in self.FIELDS if country.get(k)}
                incoming["iso_code"] = iso
                if incoming.get("iso_code_3"):
                    incoming["iso_code_3"] = incoming["iso_code_3"].upper()

                current = self.get_by_iso(iso)
                if current is None:
                    self.store.insert(
                        COUNTRIES_TABLE,
                        lambda next_id: {
                            "id": next_id,
                            "iso_code": iso,
                            "iso_code_3": incoming.get("iso_code_3"),
                            "name": incoming["name"],
                            "region": incoming.get("region"),
                            "created_at": now,
                        },
                        durable=False,
                    )
                    inserted += 1
                    continue

                missing = {k: v for k, v in incoming.items() if not current.get(k)}
                if missing:
                    self.store.upsert(
                        COUNTRIES_TABLE,
                        lambda r: r.get("iso_code") == iso,
                        lambda existing, _next_id: {**existing, **missing},
                        durable=False,
                    )
                    updated += 1

        return inserted, updated
