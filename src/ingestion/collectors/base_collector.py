"""Abstract base class for all indicator source collectors.

A collector fetches observations from one external source and hands each
normalized observation to the History-Upsert Engine. Every HTTP request goes
through the source's RateLimiter and a session whose adapter retries 429/5xx
answers with backoff (see ``create_session``):

    limiter.wait() -> GET (timeout, transport retries) -> raise_for_status() -> JSON

Collectors never raise for a single bad record or page; they log, count and
move on. ``collect()`` returns a CollectStats summary.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests

from src.shared.config import Config
from src.shared.coordination.rate_limiter import RateLimiter
from src.shared.coordination.retry import create_session
from src.shared.utils import setup_logger
from src.storage.upsert import HistoryUpsertEngine


class SourceResponseError(ValueError):
    """The source answered, but the payload is not in the expected shape."""


@dataclass
class CollectStats:
    """Outcome counters for one ``collect()`` run."""

    source: str
    pages: int = 0
    failed_pages: int = 0
    upserted: int = 0
    skipped: int = 0

    def merge(self, other: "CollectStats") -> None:
        self.pages += other.pages
        self.failed_pages += other.failed_pages
        self.upserted += other.upserted
        self.skipped += other.skipped


class BaseCollector(ABC):
    """Base class for all data collectors.

    Subclasses must define:
        SOURCE_NAME (str): identifier stored in each observation's ``source``.

    Subclasses must implement:
        collect(): fetch and upsert everything the source offers.
        health_check(): verify the source is reachable.
    """

    SOURCE_NAME: str  # e.g. "worldbank", "open.er-api.com"

    def __init__(
        self,
        engine: HistoryUpsertEngine,
        limiter: RateLimiter,
        session: requests.Session | None = None,
        timeout: float | None = None,
        log_file: Path | None = None,
    ) -> None:
        """Initialize the collector.

        Args:
            engine: Upsert engine writing into the record store.
            limiter: Per-source rate limiter, shared by all collectors of the source.
            session: Optional pre-configured requests session. Defaults to one
                with the configured retry strategy mounted.
            timeout: Per-request timeout in seconds.
            log_file: Optional path for file-based logging.
        """
        self.engine = engine
        self.store = engine.store
        self.limiter = limiter
        self._session = session or create_session()
        self.timeout = timeout or Config.REQUEST_TIMEOUT
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    @property
    def name(self) -> str:
        """Label used in logs and cycle reports."""
        return self.SOURCE_NAME

    @property
    def cache_key(self) -> str | None:
        """Read-cache entry to invalidate after this collector runs."""
        return None

    @abstractmethod
    def collect(self) -> CollectStats:
        """Fetch all observations from the source and upsert them.

        Returns:
            Counters for pages and records processed.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Verify the data source is reachable and responding.

        Returns:
            True if the source is available, False otherwise.
        """
        ...

    # ------------------------------------------------------------------
    # HTTP layer
    # ------------------------------------------------------------------

    def _get_json(self, url: str, params: dict | None = None) -> Any:
        """Rate-limited GET returning the decoded JSON body.

        Raises:
            requests.exceptions.RetryError: 429/5xx on every transport attempt.
            requests.exceptions.RequestException: Connection failure or
                non-transient HTTP status.
            SourceResponseError: Body is not valid JSON.
        """
        self.limiter.wait()
        self.logger.debug("GET %s params=%s", url, params)
        response = self._session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise SourceResponseError(f"Invalid JSON from {url}") from exc
