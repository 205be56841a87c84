"""Unit tests for the HTTP retry strategy, the retry policy and error classifiers."""

from unittest.mock import Mock

import pytest
import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import MaxRetryError
from urllib3.response import HTTPResponse

from src.shared.config import Config
from src.shared.coordination.retry import (
    RetryExhaustedError,
    RetryPolicy,
    create_session,
    exponential_backoff,
    fixed_backoff,
    http_retry,
    is_overload_error,
    is_transient_http_error,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _http_error(status: int) -> requests.exceptions.HTTPError:
    response = Mock()
    response.status_code = status
    return requests.exceptions.HTTPError(f"{status} error", response=response)


@pytest.fixture
def sleeps():
    """Records requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def fast_retry(sleeps):
    return RetryPolicy(max_attempts=3, backoff=fixed_backoff(5.0), sleep=sleeps.append, name="test")


# ---------------------------------------------------------------------------
# HTTP transport retries
# ---------------------------------------------------------------------------


class TestHttpRetry:
    """urllib3 strategy mounted on every collector session."""

    def test_defaults_from_config(self):
        retry = http_retry()

        assert retry.total == Config.MAX_RETRIES
        assert retry.backoff_factor == Config.RETRY_BACKOFF
        assert set(retry.status_forcelist) == {429, 500, 502, 503, 504}

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient_statuses_are_retried(self, status):
        assert http_retry(3, 1.0).is_retry("GET", status)

    @pytest.mark.parametrize("status", [400, 404])
    def test_client_errors_are_not_retried(self, status):
        assert not http_retry(3, 1.0).is_retry("GET", status)

    def test_only_get_is_retried(self):
        assert not http_retry(3, 1.0).is_retry("POST", 503)

    def test_backoff_is_capped(self):
        retry = http_retry(5, 2.0)
        for _ in range(4):
            retry = retry.increment(method="GET", url="/v2/country", response=HTTPResponse(status=503))

        assert retry.get_backoff_time() == 2.0

    def test_exhaustion_raises_max_retry_error(self):
        retry = http_retry(1, 0.0)
        retry = retry.increment(method="GET", url="/v2/country", response=HTTPResponse(status=503))

        with pytest.raises(MaxRetryError):
            retry.increment(method="GET", url="/v2/country", response=HTTPResponse(status=503))

    def test_session_has_retry_logic(self):
        retry = http_retry(4, 1.0)
        session = create_session(retry)

        for prefix in ("https://api.worldbank.org", "http://localhost"):
            adapter = session.get_adapter(prefix)
            assert isinstance(adapter, HTTPAdapter)
            assert adapter.max_retries is retry

    def test_session_default_strategy(self):
        adapter = create_session().get_adapter("https://open.er-api.com")

        assert adapter.max_retries.total == Config.MAX_RETRIES


# ---------------------------------------------------------------------------
# Classifiers
# ---------------------------------------------------------------------------


class TestClassifiers:
    """Which failures are worth retrying."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient_statuses(self, status):
        assert is_transient_http_error(_http_error(status))

    @pytest.mark.parametrize("status", [400, 401, 404])
    def test_client_errors_are_not_transient(self, status):
        assert not is_transient_http_error(_http_error(status))

    def test_connection_and_timeout_are_transient(self):
        assert is_transient_http_error(requests.exceptions.ConnectionError("reset"))
        assert is_transient_http_error(requests.exceptions.Timeout("slow"))

    def test_other_errors_are_not_transient(self):
        assert not is_transient_http_error(ValueError("bad payload"))

    @pytest.mark.parametrize(
        "message", ["Model is overloaded", "503 UNAVAILABLE", "rate limit exceeded", "Quota exhausted"]
    )
    def test_overload_messages(self, message):
        assert is_overload_error(RuntimeError(message))

    def test_overload_status_attribute(self):
        exc = RuntimeError("boom")
        exc.status = 429
        assert is_overload_error(exc)

    def test_plain_error_is_not_overload(self):
        assert not is_overload_error(RuntimeError("invalid prompt"))


# ---------------------------------------------------------------------------
# RetryPolicy
# ---------------------------------------------------------------------------


class TestRetryPolicy:
    """Attempts, backoff and exhaustion."""

    def test_success_first_try(self, fast_retry, sleeps):
        assert fast_retry.call(lambda: 42) == 42
        assert sleeps == []

    def test_transient_then_success(self, fast_retry, sleeps):
        fn = Mock(side_effect=[_http_error(502), {"ok": True}])

        assert fast_retry.call(fn) == {"ok": True}
        assert fn.call_count == 2
        assert sleeps == [5.0]

    def test_exhaustion_carries_last_error(self, fast_retry, sleeps):
        last = _http_error(503)
        fn = Mock(side_effect=[_http_error(503), _http_error(503), last])

        with pytest.raises(RetryExhaustedError) as excinfo:
            fast_retry.call(fn)

        assert excinfo.value.attempts == 3
        assert excinfo.value.last_error is last
        assert sleeps == [5.0, 5.0]

    def test_non_retryable_propagates_immediately(self, fast_retry, sleeps):
        fn = Mock(side_effect=_http_error(400))

        with pytest.raises(requests.exceptions.HTTPError):
            fast_retry.call(fn)

        assert fn.call_count == 1
        assert sleeps == []

    def test_exponential_backoff_schedule(self):
        sleeps = []
        policy = RetryPolicy(
            max_attempts=4,
            backoff=exponential_backoff(2.0),
            is_retryable=lambda exc: True,
            sleep=sleeps.append,
        )

        with pytest.raises(RetryExhaustedError):
            policy.call(Mock(side_effect=RuntimeError("overloaded")))

        assert sleeps == [2.0, 4.0, 8.0]

    def test_passes_arguments(self, fast_retry):
        assert fast_retry.call(lambda a, b=0: a + b, 1, b=2) == 3

    def test_fixed_backoff(self):
        assert [fixed_backoff(1.5)(n) for n in (1, 2, 3)] == [1.5, 1.5, 1.5]

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
