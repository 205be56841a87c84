"""Coordination primitives shared by fetchers, the scheduler and the analysis gateway."""

from src.shared.coordination.lock import FileLock
from src.shared.coordination.rate_limiter import RateLimiter
from src.shared.coordination.request_queue import RequestQueue
from src.shared.coordination.retry import (
    RetryExhaustedError,
    RetryPolicy,
    create_session,
    exponential_backoff,
    fixed_backoff,
    http_retry,
    is_transient_http_error,
)

__all__ = [
    "FileLock",
    "RateLimiter",
    "RequestQueue",
    "RetryExhaustedError",
    "RetryPolicy",
    "create_session",
    "exponential_backoff",
    "fixed_backoff",
    "http_retry",
    "is_transient_http_error",
]
