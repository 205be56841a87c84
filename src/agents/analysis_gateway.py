"""Throttling gateway for narrative-analysis (LLM) requests.

Prompt construction and the model client live outside the engine; this
gateway only controls how calls reach the backend:

    RequestQueue (bounded concurrency, FIFO)
      -> RateLimiter.wait()
        -> RetryPolicy (exponential backoff on overload / quota errors)
          -> backend(prompt)

Several backends can be given in preference order; when one keeps failing
the next one is tried.
"""

from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Sequence

from src.shared.config import Config
from src.shared.coordination.rate_limiter import RateLimiter
from src.shared.coordination.request_queue import RequestQueue
from src.shared.coordination.retry import (
    RetryExhaustedError,
    RetryPolicy,
    exponential_backoff,
    is_overload_error,
)
from src.shared.utils import setup_logger

Backend = Callable[[str], str]


class AnalysisUnavailableError(RuntimeError):
    """Every backend failed for a request."""


class AnalysisGateway:
    """Bounded, rate-limited, retried access to narrative-analysis backends."""

    MAX_ATTEMPTS = 4
    BACKOFF_BASE = 2.0  # 2s, 4s, 8s between attempts

    def __init__(
        self,
        backends: Sequence[tuple[str, Backend]],
        queue: RequestQueue | None = None,
        limiter: RateLimiter | None = None,
        retry: RetryPolicy | None = None,
        log_file: Path | None = None,
    ) -> None:
        if not backends:
            raise ValueError("At least one analysis backend is required")
        self.backends = list(backends)
        self.queue = queue or RequestQueue(Config.ANALYSIS_MAX_CONCURRENT, name="analysis")
        self.limiter = limiter or RateLimiter("analysis", Config.ANALYSIS_MIN_DELAY)
        self.retry = retry or RetryPolicy(
            max_attempts=self.MAX_ATTEMPTS,
            backoff=exponential_backoff(self.BACKOFF_BASE),
            is_retryable=is_overload_error,
            name="analysis",
        )
        self.logger = setup_logger(self.__class__.__name__, log_file, Config.LOG_LEVEL)

    def submit(self, prompt: str) -> Future:
        """Queue an analysis request; the future resolves to the generated text."""
        return self.queue.submit(self._call_backends, prompt)

    def analyze(self, prompt: str) -> str:
        """Queue an analysis request and block for its text.

        Raises:
            AnalysisUnavailableError: All backends failed.
        """
        return self.submit(prompt).result()

    def get_status(self) -> dict:
        return {"queue": self.queue.get_status(), "limiter": self.limiter.get_status()}

    def _call_backends(self, prompt: str) -> str:
        last_error: BaseException | None = None
        for name, backend in self.backends:

            def attempt(backend: Backend = backend) -> str:
                self.limiter.wait()
                text = backend(prompt)
                if not text or not text.strip():
                    raise ValueError("Empty response from analysis backend")
                return text

            try:
                return self.retry.call(attempt)
            except RetryExhaustedError as exc:
                self.logger.warning("Backend %s exhausted retries: %s", name, exc.last_error)
                last_error = exc
            except Exception as exc:
                self.logger.warning("Backend %s failed: %s", name, exc)
                last_error = exc

        raise AnalysisUnavailableError(
            "Analysis failed after retries. Please try again later."
        ) from last_error
