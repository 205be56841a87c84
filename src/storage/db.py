"""
JSON Snapshot Record Store

The whole store lives in memory and is persisted as a single JSON document.
Every durable write rewrites the full snapshot atomically (temp file, fsync,
rename), so the file on disk is always a complete, parseable snapshot.

Mutation and persistence happen inside one coarse re-entrant lock. Records
are replaced rather than edited in place and readers receive copies, so a
concurrent reader sees either the old or the new version of a record.
"""

import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from src.shared.config import Config
from src.shared.utils import setup_logger
from src.storage.schema import COUNTRIES_TABLE, empty_snapshot

Record = dict[str, Any]


def is_valid_record(table: str, record: Any) -> bool:
    """Whether a loaded snapshot entry can be read and upserted safely."""
    if not isinstance(record, dict):
        return False
    record_id = record.get("id")
    if record_id is not None and (isinstance(record_id, bool) or not isinstance(record_id, int)):
        return False
    key_field = "iso_code" if table == COUNTRIES_TABLE else "country_iso"
    if not isinstance(record.get(key_field), str):
        return False
    return all(
        isinstance(record.get(f), (str, type(None))) for f in ("effective_date", "updated_at")
    )


class RecordStore:
    """In-memory record arrays backed by an atomically rewritten JSON snapshot."""

    def __init__(self, path: Path | None = None, log_file: Path | None = None) -> None:
        self.path = Path(path or Config.SNAPSHOT_PATH)
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)
        self._lock = threading.RLock()
        self._depth = 0
        self._dirty = False
        self._data = self._load()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def tables(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())

    def records(self, table: str) -> list[Record]:
        """All records of a table, as copies."""
        with self._lock:
            return [dict(r) for r in self._table(table)]

    def where(self, table: str, **match: Any) -> list[Record]:
        """Records whose fields equal every ``match`` value."""
        with self._lock:
            return [
                dict(r)
                for r in self._table(table)
                if all(r.get(k) == v for k, v in match.items())
            ]

    def by_id(self, table: str, record_id: int) -> Record | None:
        with self._lock:
            for r in self._table(table):
                if r.get("id") == record_id:
                    return dict(r)
            return None

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def snapshot(self) -> dict[str, list[Record]]:
        """Deep copy of the whole store."""
        with self._lock:
            return copy.deepcopy(self._data)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(
        self,
        table: str,
        match: Callable[[Record], bool],
        build: Callable[[Record | None, int], Record],
        durable: bool = True,
    ) -> Record:
        """Replace the first record satisfying ``match`` or append a new one.

        Args:
            table: Target array.
            match: Predicate selecting the record to replace.
            build: Called with (existing record copy or None, next free id);
                returns the full record to store.
            durable: Persist the snapshot after the write (ignored inside a
                transaction, which persists once on exit).

        Returns:
            A copy of the stored record.
        """
        with self._lock:
            rows = self._table(table)
            index = next((i for i, r in enumerate(rows) if match(r)), None)
            existing = dict(rows[index]) if index is not None else None
            record = build(existing, self._next_id(rows))
            if index is None:
                rows.append(record)
            else:
                rows[index] = record
            self._dirty = True
            if durable:
                self._commit()
            return dict(record)

    def insert(self, table: str, build: Callable[[int], Record], durable: bool = True) -> Record:
        """Append a new record built from the next free id."""
        with self._lock:
            rows = self._table(table)
            record = build(self._next_id(rows))
            rows.append(record)
            self._dirty = True
            if durable:
                self._commit()
            return dict(record)

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """Group several writes into one durable snapshot write.

        Other writers and readers wait until the block finishes. Nested
        transactions persist once, when the outermost block exits.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
                if self._depth == 0 and self._dirty:
                    self.save_snapshot()

    def save_snapshot(self) -> None:
        """Atomically rewrite the snapshot file with the current state."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(self._data, fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                raise
            self._dirty = False

    def reload(self) -> None:
        """Re-read the snapshot from disk, discarding in-memory state."""
        with self._lock:
            self._data = self._load()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _table(self, table: str) -> list[Record]:
        try:
            return self._data[table]
        except KeyError:
            raise KeyError(f"Unknown table: {table}") from None

    @staticmethod
    def _next_id(rows: list[Record]) -> int:
        return max((r.get("id") or 0 for r in rows), default=0) + 1

    def _commit(self) -> None:
        if self._depth == 0:
            self.save_snapshot()

    def _load(self) -> dict[str, list[Record]]:
        """Read the snapshot, merging it over the canonical empty schema.

        Missing or corrupt files never fail startup: the store resets to the
        empty schema and persists it right away. A corrupt file is kept aside
        as ``<name>.corrupt``. Entries that are not records, or whose id, key
        or date fields have the wrong type, are dropped with a warning.
        """
        data = empty_snapshot()

        if not self.path.exists():
            self.logger.info("No snapshot at %s, starting with an empty store", self.path)
            self._data = data
            self.save_snapshot()
            return data

        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(parsed, dict):
                raise ValueError(f"snapshot root is {type(parsed).__name__}, expected object")
        except (ValueError, UnicodeDecodeError) as exc:
            corrupt_path = self.path.with_name(self.path.name + ".corrupt")
            self.logger.error(
                "Corrupt snapshot %s (%s); moved to %s and reset to empty",
                self.path,
                exc,
                corrupt_path,
            )
            os.replace(self.path, corrupt_path)
            self._data = data
            self.save_snapshot()
            return data

        for key, value in parsed.items():
            if key in data and not isinstance(value, list):
                self.logger.warning("Snapshot key %s is not an array, resetting it", key)
                continue
            if key in data:
                valid = [r for r in value if is_valid_record(key, r)]
                if len(valid) != len(value):
                    self.logger.warning(
                        "Snapshot key %s: dropped %d malformed record(s)", key, len(value) - len(valid)
                    )
                value = valid
            data[key] = value

        self.logger.info(
            "Loaded snapshot %s (%d countries)", self.path, len(data.get("countries", []))
        )
        return data
