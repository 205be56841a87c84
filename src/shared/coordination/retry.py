"""Retry handling for calls against external sources.

HTTP sources retry inside the transport: ``create_session`` mounts an
``HTTPAdapter`` carrying a urllib3 ``Retry`` (see ``http_retry``), so a GET
that keeps answering 429/5xx surfaces as ``requests.exceptions.RetryError``
and a dead connection as ``requests.exceptions.ConnectionError``.

Non-HTTP backends use ``RetryPolicy``, which runs a callable up to
``max_attempts`` times, sleeping ``backoff(attempt)`` seconds between
attempts, as long as the raised error is classified retryable. Non-retryable
errors propagate immediately; exhaustion raises ``RetryExhaustedError``
chained to the last error.
"""

import re
import time
from typing import Any, Callable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.shared.config import Config
from src.shared.utils import setup_logger

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def http_retry(total: int | None = None, backoff: float | None = None) -> Retry:
    """urllib3 retry strategy for idempotent GETs against rate-limited APIs.

    Args:
        total: Attempts after the first request. Defaults to ``Config.MAX_RETRIES``.
        backoff: Backoff factor in seconds, also the ceiling for a single
            sleep. Defaults to ``Config.RETRY_BACKOFF``.
    """
    total = Config.MAX_RETRIES if total is None else total
    backoff = Config.RETRY_BACKOFF if backoff is None else backoff
    return Retry(
        total=total,
        backoff_factor=backoff,
        backoff_max=backoff,
        status_forcelist=sorted(TRANSIENT_STATUS_CODES),
        allowed_methods=["GET"],
        respect_retry_after_header=True,
    )


def create_session(retry: Retry | None = None) -> requests.Session:
    """Session with the retry strategy mounted for both schemes."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry if retry is not None else http_retry())
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": "econ-ingest/1.0"})
    return session


class RetryExhaustedError(Exception):
    """All attempts of a retried call failed with retryable errors."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Giving up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def fixed_backoff(delay: float) -> Callable[[int], float]:
    """Same delay before every retry."""
    return lambda attempt: delay


def exponential_backoff(base: float, factor: float = 2.0) -> Callable[[int], float]:
    """Delay ``base * factor ** (attempt - 1)``: 2s, 4s, 8s... for base=2."""
    return lambda attempt: base * factor ** (attempt - 1)


def is_transient_http_error(exc: BaseException) -> bool:
    """Connection errors, timeouts and 429/5xx gateway statuses are worth retrying."""
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True
    if isinstance(exc, requests.exceptions.HTTPError):
        response = exc.response
        return response is not None and response.status_code in TRANSIENT_STATUS_CODES
    return False


_OVERLOAD_PATTERN = re.compile(r"overloaded|unavailable|rate.limit|quota|throttl", re.IGNORECASE)


def is_overload_error(exc: BaseException) -> bool:
    """Transient HTTP errors plus backend messages that signal overload or quota."""
    if is_transient_http_error(exc):
        return True
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status in (429, 500, 503):
        return True
    return bool(_OVERLOAD_PATTERN.search(str(exc)))


class RetryPolicy:
    """Bounded retry with a pluggable backoff schedule and error classifier."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Callable[[int], float] | None = None,
        is_retryable: Callable[[BaseException], bool] = is_transient_http_error,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "retry",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff = backoff or fixed_backoff(5.0)
        self.is_retryable = is_retryable
        self._sleep = sleep
        self.logger = setup_logger(f"{self.__class__.__name__}.{name}", level=Config.LOG_LEVEL)

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Invoke ``fn`` with retries.

        Raises:
            RetryExhaustedError: Every attempt failed with a retryable error.
            Exception: The first non-retryable error, unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                if attempt == self.max_attempts:
                    raise RetryExhaustedError(attempt, exc) from exc
                delay = self.backoff(attempt)
                self.logger.warning(
                    "Call failed (attempt %d/%d): %s; retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)
