"""Scheduler abstraction for recurring ingestion cycles.

The orchestrator only needs ``register(job)``; how and when the job fires is
up to the scheduler. Two implementations:

    IntervalScheduler  backed by the ``schedule`` library and an expression
                       such as "every 6 hours", "daily at 02:00" or
                       "monday at 03:00" (times in UTC)
    ManualScheduler    fires only when ``trigger()`` is called
"""

import re
import threading
from typing import Any, Callable, Protocol

import schedule

from src.shared.config import Config
from src.shared.utils import setup_logger

Job = Callable[[], Any]

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_EVERY = re.compile(r"^every\s+(\d+)\s+(minute|minutes|hour|hours|day|days)$")
_AT = re.compile(r"^(daily|" + "|".join(WEEKDAYS) + r")\s+at\s+(\d{1,2}):(\d{2})$")


class CycleScheduler(Protocol):
    def register(self, job: Job) -> None: ...

    def run_pending(self) -> None: ...

    def run_forever(self, stop_event: threading.Event | None = None) -> None: ...


def parse_schedule(expression: str) -> dict:
    """Parse a schedule expression.

    Returns:
        {"unit": "minutes"|"hours"|"days", "interval": int} or
        {"unit": "daily"|<weekday>, "at": "HH:MM"}

    Raises:
        ValueError: Unrecognized expression or out-of-range values.
    """
    text = " ".join(expression.strip().lower().split())

    if match := _EVERY.match(text):
        interval = int(match.group(1))
        if interval < 1:
            raise ValueError(f"Schedule interval must be positive: '{expression}'")
        unit = match.group(2)
        return {"unit": unit if unit.endswith("s") else unit + "s", "interval": interval}

    if match := _AT.match(text):
        hour, minute = int(match.group(2)), int(match.group(3))
        if hour > 23 or minute > 59:
            raise ValueError(f"Invalid time of day in schedule: '{expression}'")
        return {"unit": match.group(1), "at": f"{hour:02d}:{minute:02d}"}

    raise ValueError(
        f"Unrecognized schedule '{expression}'. Expected 'every N minutes|hours|days', "
        "'daily at HH:MM' or '<weekday> at HH:MM'"
    )


class IntervalScheduler:
    """``schedule``-library scheduler with its own job registry (not the module default)."""

    def __init__(
        self,
        expression: str,
        timezone: str = "UTC",
        poll_interval: float = 1.0,
    ) -> None:
        self.expression = expression
        self.rule = parse_schedule(expression)
        self.timezone = timezone
        self.poll_interval = poll_interval
        self._scheduler = schedule.Scheduler()
        self.logger = setup_logger(self.__class__.__name__, level=Config.LOG_LEVEL)

    def register(self, job: Job) -> schedule.Job:
        rule = self.rule
        if "interval" in rule:
            builder = self._scheduler.every(rule["interval"])
            registered = getattr(builder, rule["unit"]).do(job)
        elif rule["unit"] == "daily":
            registered = self._scheduler.every().day.at(rule["at"], self.timezone).do(job)
        else:
            weekday = getattr(self._scheduler.every(), rule["unit"])
            registered = weekday.at(rule["at"], self.timezone).do(job)
        self.logger.info("Registered job for '%s', next run %s", self.expression, registered.next_run)
        return registered

    @property
    def jobs(self) -> list[schedule.Job]:
        return list(self._scheduler.jobs)

    def run_pending(self) -> None:
        self._scheduler.run_pending()

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Poll for due jobs until ``stop_event`` is set."""
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                self.run_pending()
            except Exception:
                self.logger.exception("Scheduled job raised")
            stop_event.wait(self.poll_interval)

    def clear(self) -> None:
        self._scheduler.clear()


class ManualScheduler:
    """Runs registered jobs only when triggered."""

    def __init__(self) -> None:
        self._jobs: list[Job] = []
        self._triggered = threading.Event()

    def register(self, job: Job) -> None:
        self._jobs.append(job)

    def trigger(self) -> list[Any]:
        """Run every registered job now, in registration order."""
        self._triggered.clear()
        return [job() for job in self._jobs]

    def request(self) -> None:
        """Mark jobs due for the next ``run_pending``."""
        self._triggered.set()

    def run_pending(self) -> None:
        if self._triggered.is_set():
            self.trigger()

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            self.run_pending()
            stop_event.wait(0.1)
