"""Configuration management for the economic indicator engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration.

    Every value can be overridden through the environment (or a ``.env`` file).
    """

    # Project paths
    ROOT_DIR = Path(__file__).resolve().parent.parent.parent
    DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))
    LOGS_DIR = Path(os.getenv("LOGS_DIR", str(ROOT_DIR / "logs")))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Record store
    SNAPSHOT_PATH = Path(os.getenv("DATABASE_PATH", str(DATA_DIR / "economic_data.json")))

    # Cross-instance lock
    LOCK_PATH = Path(os.getenv("SCHEDULER_LOCK_PATH", str(DATA_DIR / ".scheduler.lock")))
    LOCK_EXPIRY_SECONDS: float = float(os.getenv("LOCK_EXPIRY_SECONDS", "3600"))

    # Sources
    WORLD_BANK_API_URL: str = os.getenv("WORLD_BANK_API_URL", "https://api.worldbank.org/v2")
    EXCHANGE_RATE_API_URL: str = os.getenv(
        "EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6/latest/USD"
    )

    # Per-source politeness delays (seconds)
    WORLD_BANK_MIN_DELAY: float = float(os.getenv("WORLD_BANK_MIN_DELAY", "1.0"))
    EXCHANGE_RATE_MIN_DELAY: float = float(os.getenv("EXCHANGE_RATE_MIN_DELAY", "0.5"))
    ANALYSIS_MIN_DELAY: float = float(os.getenv("ANALYSIS_MIN_DELAY", "2.0"))

    # HTTP behaviour
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_BACKOFF: float = float(os.getenv("RETRY_BACKOFF", "5.0"))

    # World Bank windowing
    WORLD_BANK_PER_PAGE: int = int(os.getenv("WORLD_BANK_PER_PAGE", "1000"))
    RECENT_YEARS: int = int(os.getenv("RECENT_YEARS", "5"))
    HISTORY_START_YEAR: int = int(os.getenv("HISTORY_START_YEAR", "2000"))

    # Scheduling
    INGEST_SCHEDULE: str = os.getenv("INGEST_SCHEDULE", "daily at 02:00")
    CYCLE_TIMEOUT: float = float(os.getenv("CYCLE_TIMEOUT", "3000"))

    # Reads
    CACHE_TTL: int = int(os.getenv("CACHE_TTL", "3600"))

    # Narrative analysis gateway
    ANALYSIS_MAX_CONCURRENT: int = int(os.getenv("ANALYSIS_MAX_CONCURRENT", "3"))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a value is out of range or inconsistent.
        """
        if cls.MAX_RETRIES < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        if cls.WORLD_BANK_PER_PAGE < 1:
            raise ValueError("WORLD_BANK_PER_PAGE must be positive")
        if cls.ANALYSIS_MAX_CONCURRENT < 1:
            raise ValueError("ANALYSIS_MAX_CONCURRENT must be at least 1")
        if cls.CYCLE_TIMEOUT >= cls.LOCK_EXPIRY_SECONDS:
            raise ValueError("CYCLE_TIMEOUT must be shorter than LOCK_EXPIRY_SECONDS")
        if min(cls.WORLD_BANK_MIN_DELAY, cls.EXCHANGE_RATE_MIN_DELAY, cls.ANALYSIS_MIN_DELAY) < 0:
            raise ValueError("Rate limiter delays cannot be negative")
