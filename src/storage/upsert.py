"""History-preserving upsert of observations.

An observation is identified by its series identity fields plus, when it has
one, its ``effective_date``. Re-ingesting the same period overwrites the
stored record in place (same id, new value, new ``updated_at``); a new period
appends a new record, so the series accumulates history.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable

from src.shared.config import Config
from src.shared.utils import isoformat_utc, normalize_effective_date, setup_logger, utc_now
from src.storage.db import Record, RecordStore
from src.storage.schema import SeriesSpec, get_series

# Fields owned by the engine; caller-supplied values are ignored
_ENGINE_FIELDS = ("id", "updated_at")


class HistoryUpsertEngine:
    """Applies observations to the store, one record per (identity, effective_date)."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = utc_now,
        log_file: Path | None = None,
    ) -> None:
        self.store = store
        self._clock = clock
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    def apply(self, series: SeriesSpec | str, record: dict, durable: bool = True) -> int:
        """Insert or overwrite one observation.

        Args:
            series: Series spec or key (e.g. "interest").
            record: Observation fields. Must contain the series identity fields
                and value field; ``effective_date`` is optional and normalized
                to ``YYYY-MM-DD``.
            durable: Persist the snapshot immediately. Pass False inside
                ``store.transaction()`` to batch a page of writes.

        Returns:
            The id of the stored record.

        Raises:
            ValueError: Missing identity/value fields, non-numeric value or
                unparseable effective date.
        """
        spec = get_series(series) if isinstance(series, str) else series
        incoming = self._validate(spec, record)
        identity = {f: incoming[f] for f in spec.identity_fields}
        effective_date = incoming.get("effective_date")
        now = isoformat_utc(self._clock())

        def match(existing: Record) -> bool:
            if any(existing.get(f) != v for f, v in identity.items()):
                return False
            if effective_date is not None:
                return existing.get("effective_date") == effective_date
            return True

        def build(existing: Record | None, next_id: int) -> Record:
            record_id = existing["id"] if existing else next_id
            return {**spec.defaults, **incoming, "id": record_id, "updated_at": now}

        stored = self.store.upsert(spec.table, match, build, durable=durable)
        self.logger.debug(
            "%s upserted id=%d identity=%s effective_date=%s",
            spec.key,
            stored["id"],
            identity,
            effective_date,
        )
        return stored["id"]

    @staticmethod
    def _validate(spec: SeriesSpec, record: dict) -> dict:
        incoming = {k: v for k, v in record.items() if k not in _ENGINE_FIELDS}

        missing = [f for f in (*spec.identity_fields, spec.value_field) if incoming.get(f) in (None, "")]
        if missing:
            raise ValueError(f"{spec.key}: observation missing required fields {missing}")

        try:
            incoming[spec.value_field] = float(incoming[spec.value_field])
        except (TypeError, ValueError) as exc:
            raise ValueError(
                f"{spec.key}: non-numeric {spec.value_field}={incoming[spec.value_field]!r}"
            ) from exc

        incoming["country_iso"] = str(incoming["country_iso"]).upper()
        if "effective_date" in incoming:
            normalized = normalize_effective_date(incoming["effective_date"])
            if normalized is None:
                incoming.pop("effective_date")
            else:
                incoming["effective_date"] = normalized
        return incoming
