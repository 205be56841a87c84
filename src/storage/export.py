"""CSV export of a stored series."""

from pathlib import Path

import pandas as pd

from src.storage.db import RecordStore
from src.storage.repository import CountryRepository, sort_key_effective
from src.storage.schema import SeriesSpec, get_series


def series_to_frame(store: RecordStore, series: SeriesSpec | str) -> pd.DataFrame:
    """All records of a series as a DataFrame, with ``country_name`` attached.

    Rows are ordered by country, then ascending effective date.
    """
    spec = get_series(series) if isinstance(series, str) else series
    names = CountryRepository(store).names()
    rows = sorted(
        store.records(spec.table),
        key=lambda r: (r.get("country_iso") or "", sort_key_effective(r)),
    )
    df = pd.DataFrame(rows)
    if not df.empty:
        df.insert(2, "country_name", df["country_iso"].map(names))
    return df


def export_series_to_csv(store: RecordStore, series: SeriesSpec | str, path: Path) -> Path:
    """Write one series to CSV.

    Raises:
        ValueError: If the series holds no records.
    """
    spec = get_series(series) if isinstance(series, str) else series
    df = series_to_frame(store, spec)
    if df.empty:
        raise ValueError(f"Cannot export empty series '{spec.key}'")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
    return path
