"""Shared utilities, configuration and coordination primitives."""

from src.shared.config import Config
from src.shared.utils import normalize_effective_date, setup_logger, to_utc, utc_now

__all__ = ["Config", "setup_logger", "to_utc", "utc_now", "normalize_effective_date"]
