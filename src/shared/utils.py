"""Shared utility functions: logging setup, UTC time and period normalization."""

import logging
import os
import re
from datetime import date, datetime
from email.utils import parsedate_to_datetime
from pathlib import Path

import pytz


def setup_logger(
    name: str, log_file: Path | None = None, level: int | str = logging.INFO
) -> logging.Logger:
    """Set up logger with console and file handlers.

    Repeated calls for the same name reuse the console handler and add a file
    handler only for a log file not attached yet, so constructing the same
    component twice does not duplicate output.

    Args:
        name: Logger name
        log_file: Optional path to log file
        level: Logging level (int constant or string name like 'DEBUG', 'INFO')

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Convert string level to int if needed
    if isinstance(level, str):
        numeric_level = getattr(logging, level.upper(), logging.INFO)
        logger.setLevel(numeric_level)
    else:
        logger.setLevel(level)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Console handler (FileHandler subclasses StreamHandler, so match the exact type)
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file = Path(log_file)
        target = os.path.abspath(log_file)
        attached = {
            h.baseFilename for h in logger.handlers if isinstance(h, logging.FileHandler)
        }
        if target not in attached:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def to_utc(dt: datetime, from_tz: str = "UTC") -> datetime:
    """Convert datetime to UTC; naive values are interpreted in ``from_tz``."""
    if dt.tzinfo is None:
        dt = pytz.timezone(from_tz).localize(dt)
    return dt.astimezone(pytz.UTC)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def isoformat_utc(dt: datetime) -> str:
    """Serialize a datetime as ISO-8601 UTC with a trailing ``Z``."""
    return to_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


_YEAR = re.compile(r"^(\d{4})$")
_QUARTER = re.compile(r"^(\d{4})-?Q([1-4])$", re.IGNORECASE)
_MONTH = re.compile(r"^(\d{4})(?:M|-)(\d{1,2})$", re.IGNORECASE)
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


def normalize_effective_date(value: str | date | datetime | None) -> str | None:
    """Normalize a source period or timestamp to ``YYYY-MM-DD``.

    Accepted forms:
        - ``"2022"`` -> ``"2022-01-01"``
        - ``"2022Q3"`` -> ``"2022-07-01"``
        - ``"2022M05"`` / ``"2022-05"`` -> ``"2022-05-01"``
        - ISO dates and timestamps (``"2024-03-01"``, ``"2024-03-01T10:00:00Z"``)
        - RFC 2822 timestamps (``"Sat, 18 Oct 2026 00:02:31 +0000"``), taken in UTC

    Returns:
        The normalized date string, or None for an empty input.

    Raises:
        ValueError: If the value matches none of the accepted forms.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value).date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    if not text:
        return None

    if match := _YEAR.match(text):
        return f"{match.group(1)}-01-01"
    if match := _QUARTER.match(text):
        month = (int(match.group(2)) - 1) * 3 + 1
        return f"{match.group(1)}-{month:02d}-01"
    if match := _MONTH.match(text):
        month = int(match.group(2))
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month in period '{text}'")
        return f"{match.group(1)}-{month:02d}-01"
    if _ISO_DATE.match(text):
        if len(text) == 10:
            return date.fromisoformat(text).isoformat()
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return to_utc(parsed).date().isoformat()

    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unrecognized period or date: '{text}'") from exc
    return to_utc(parsed).date().isoformat()
