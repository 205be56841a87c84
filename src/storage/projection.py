"""Latest-value and history projections over observation series.

Read-side only: never writes to the store. Every returned row is enriched
with ``country_name`` and a uniform ``value`` field (the series value field).
"""

from typing import Literal

from src.storage.db import Record, RecordStore
from src.storage.repository import CountryRepository, sort_key_effective
from src.storage.schema import SeriesSpec, get_series

LatestPolicy = Literal["effective_date", "updated_at"]
LATEST_POLICIES: tuple[str, ...] = ("effective_date", "updated_at")


def _sort_key_updated(record: Record) -> str:
    return record.get("updated_at") or ""


class LatestValueProjector:
    """Derives the current value per country and ordered per-country histories."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.countries = CountryRepository(store)

    def latest(self, series: SeriesSpec | str, policy: LatestPolicy = "effective_date") -> list[Record]:
        """One record per country: the most recent by the given policy.

        ``effective_date`` orders by the economic date (falling back to
        ``updated_at`` for undated records); ``updated_at`` orders by ingestion
        time. When two records tie, the one stored first wins. Output is
        sorted by descending key.

        Raises:
            ValueError: Unknown policy.
        """
        spec = self._spec(series)
        if policy == "effective_date":
            key = sort_key_effective
        elif policy == "updated_at":
            key = _sort_key_updated
        else:
            raise ValueError(f"Unknown latest policy '{policy}', expected one of {LATEST_POLICIES}")

        # sorted() is stable with reverse=True, so ties keep storage order
        ordered = sorted(self.store.records(spec.table), key=key, reverse=True)
        seen: set[str] = set()
        latest: list[Record] = []
        for record in ordered:
            iso = record.get("country_iso")
            if iso in seen:
                continue
            seen.add(iso)
            latest.append(record)
        return self._enrich(spec, latest)

    def historical(self, series: SeriesSpec | str, country_iso: str) -> list[Record]:
        """Every record of one country, ascending by effective date."""
        spec = self._spec(series)
        rows = self.store.where(spec.table, country_iso=country_iso.upper())
        return self._enrich(spec, sorted(rows, key=sort_key_effective))

    def with_estimates(self, series: SeriesSpec | str, rows: list[Record]) -> list[Record]:
        """Cover every known country, estimating those without data.

        A missing country gets the average of its region's real values, or
        the global average when its region has none. Estimated rows carry
        ``is_estimated=True`` and ``estimated_from`` ("region_avg" or
        "global_avg"); real rows carry ``is_estimated=False``.
        """
        spec = self._spec(series)
        countries = self.countries.get_all()
        region_of = {c["iso_code"]: c.get("region") or "Unknown" for c in countries}
        by_iso = {r["country_iso"]: r for r in rows}

        region_values: dict[str, list[float]] = {}
        all_values: list[float] = []
        for row in rows:
            value = row.get("value")
            if not isinstance(value, (int, float)):
                continue
            all_values.append(value)
            region_values.setdefault(region_of.get(row["country_iso"], "Unknown"), []).append(value)
        global_avg = sum(all_values) / len(all_values) if all_values else 0.0

        filled: list[Record] = []
        for country in countries:
            iso = country["iso_code"]
            if iso in by_iso:
                filled.append({**by_iso[iso], "is_estimated": False})
                continue
            values = region_values.get(region_of[iso])
            value = sum(values) / len(values) if values else global_avg
            filled.append(
                {
                    "country_iso": iso,
                    "country_name": country.get("name"),
                    spec.value_field: value,
                    "value": value,
                    "effective_date": None,
                    "is_estimated": True,
                    "estimated_from": "region_avg" if values else "global_avg",
                }
            )
        return filled

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _spec(series: SeriesSpec | str) -> SeriesSpec:
        return get_series(series) if isinstance(series, str) else series

    def _enrich(self, spec: SeriesSpec, rows: list[Record]) -> list[Record]:
        names = self.countries.names()
        return [
            {**r, "country_name": names.get(r.get("country_iso")), "value": r.get(spec.value_field)}
            for r in rows
        ]
