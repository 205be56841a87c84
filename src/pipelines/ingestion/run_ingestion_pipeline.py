"""Economic indicator ingestion pipeline: wiring and command-line entry point.

Builds the store, upsert engine, per-source rate limiters, collectors, lock,
orchestrator and read facade from Config, then runs the requested command.

Usage:
    # One locked ingestion cycle (seed countries, exchange rates, all World Bank indicators)
    python -m src.pipelines.ingestion.run_ingestion_pipeline run

    # Long-running scheduler (INGEST_SCHEDULE, e.g. "daily at 02:00"), with startup check
    python -m src.pipelines.ingestion.run_ingestion_pipeline daemon

    # Seed the countries table only
    python -m src.pipelines.ingestion.run_ingestion_pipeline seed

    # Read the store
    python -m src.pipelines.ingestion.run_ingestion_pipeline latest interest
    python -m src.pipelines.ingestion.run_ingestion_pipeline latest inflation --estimates
    python -m src.pipelines.ingestion.run_ingestion_pipeline history DE interest

    # Export a series to CSV
    python -m src.pipelines.ingestion.run_ingestion_pipeline export gdp --output data/exports/gdp.csv

    # Limiter, lock and store status
    python -m src.pipelines.ingestion.run_ingestion_pipeline status
"""

import argparse
import json
import sys
import threading
from dataclasses import dataclass
from pathlib import Path

import requests

from src.ingestion.collectors.base_collector import BaseCollector
from src.ingestion.collectors.exchange_rate_collector import ExchangeRateCollector
from src.ingestion.collectors.worldbank_collector import WorldBankCollector
from src.ingestion.collectors.worldbank_indicators import WORLD_BANK_INDICATORS
from src.ingestion.country_seeder import CountrySeeder
from src.pipelines.ingestion.orchestrator import IngestionOrchestrator
from src.pipelines.ingestion.scheduler import IntervalScheduler
from src.shared.config import Config
from src.shared.coordination.lock import FileLock
from src.shared.coordination.rate_limiter import RateLimiter
from src.shared.coordination.retry import create_session, http_retry
from src.shared.utils import setup_logger
from src.storage.cache import TTLCache
from src.storage.db import RecordStore
from src.storage.export import export_series_to_csv
from src.storage.projection import LATEST_POLICIES
from src.storage.rates_service import RatesService
from src.storage.schema import SERIES
from src.storage.upsert import HistoryUpsertEngine


@dataclass
class IngestionContext:
    """Every wired component of one service instance."""

    store: RecordStore
    engine: HistoryUpsertEngine
    cache: TTLCache
    limiters: dict[str, RateLimiter]
    seeder: CountrySeeder
    exchange: ExchangeRateCollector
    worldbank: list[WorldBankCollector]
    lock: FileLock
    orchestrator: IngestionOrchestrator
    rates: RatesService

    @property
    def fetchers(self) -> list[BaseCollector]:
        return [self.seeder, self.exchange, *self.worldbank]


def build_context(
    snapshot_path: Path | None = None,
    lock_path: Path | None = None,
    session: requests.Session | None = None,
) -> IngestionContext:
    """Wire the engine from Config. Nothing is shared through module globals."""
    store = RecordStore(snapshot_path or Config.SNAPSHOT_PATH)
    engine = HistoryUpsertEngine(store)
    cache = TTLCache(Config.CACHE_TTL)
    session = session or create_session(http_retry(Config.MAX_RETRIES, Config.RETRY_BACKOFF))

    limiters = {
        "worldbank": RateLimiter("worldbank", Config.WORLD_BANK_MIN_DELAY),
        "exchange": RateLimiter("exchange", Config.EXCHANGE_RATE_MIN_DELAY),
    }

    seeder = CountrySeeder(engine, limiters["worldbank"], session=session)
    exchange = ExchangeRateCollector(engine, limiters["exchange"], session=session)
    worldbank = [
        WorldBankCollector(indicator, engine, limiters["worldbank"], session=session)
        for indicator in WORLD_BANK_INDICATORS.values()
    ]

    lock = FileLock(lock_path or Config.LOCK_PATH, expiry=Config.LOCK_EXPIRY_SECONDS)
    orchestrator = IngestionOrchestrator(
        store, [seeder, exchange, *worldbank], lock, cache=cache
    )
    rates = RatesService(store, cache, orchestrator=orchestrator, exchange_fetcher=exchange)

    return IngestionContext(
        store=store,
        engine=engine,
        cache=cache,
        limiters=limiters,
        seeder=seeder,
        exchange=exchange,
        worldbank=worldbank,
        lock=lock,
        orchestrator=orchestrator,
        rates=rates,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Ingest and query economic indicators (World Bank + exchange rates)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run one ingestion cycle")
    run.add_argument(
        "--no-lock", action="store_true", help="Run without taking the cross-instance lock"
    )

    sub.add_parser("daemon", help="Run cycles on INGEST_SCHEDULE until interrupted")
    sub.add_parser("seed", help="Seed the countries table from the World Bank")

    latest = sub.add_parser("latest", help="Print the latest value per country")
    latest.add_argument("series", choices=sorted(SERIES))
    latest.add_argument("--policy", choices=LATEST_POLICIES, default="effective_date")
    latest.add_argument(
        "--estimates",
        action="store_true",
        help="Include every country, estimating missing ones from region/global averages",
    )

    history = sub.add_parser("history", help="Print one country's history for a series")
    history.add_argument("country", metavar="ISO2")
    history.add_argument("series", choices=sorted(SERIES))

    export = sub.add_parser("export", help="Export a series to CSV")
    export.add_argument("series", choices=sorted(SERIES))
    export.add_argument("--output", type=Path, metavar="PATH", help="Output CSV path")

    sub.add_parser("status", help="Show limiter, lock and store status")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logger = setup_logger("ingestion_pipeline", level="DEBUG" if args.verbose else Config.LOG_LEVEL)

    try:
        Config.validate()
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    ctx = build_context()

    if args.command == "run":
        report = ctx.orchestrator.run_cycle() if args.no_lock else ctx.orchestrator.run_locked_cycle()
        if report is None:
            logger.info("Cycle skipped: lock held by another instance")
            return 0
        for result in report.results:
            stats = result.stats
            logger.info(
                "  %-28s %-8s %6.1fs upserted=%s failed_pages=%s",
                result.name,
                result.status,
                result.duration,
                stats.upserted if stats else "-",
                stats.failed_pages if stats else "-",
            )
        return 1 if report.partial else 0

    if args.command == "daemon":
        scheduler = IntervalScheduler(Config.INGEST_SCHEDULE)
        ctx.orchestrator.schedule(scheduler)
        ctx.orchestrator.run_startup_check(background=True)
        logger.info("Scheduler running (%s). Press Ctrl+C to stop", Config.INGEST_SCHEDULE)
        stop = threading.Event()
        try:
            scheduler.run_forever(stop)
        except KeyboardInterrupt:
            stop.set()
            logger.info("Shutdown requested")
        return 0

    if args.command == "seed":
        stats = ctx.seeder.collect()
        logger.info("Seeded %d countries", stats.upserted)
        return 0

    if args.command == "latest":
        if args.estimates:
            rows = ctx.rates.map_values(args.series)
        else:
            rows = ctx.rates.latest(args.series, policy=args.policy)
        print(json.dumps(rows, indent=2))
        return 0

    if args.command == "history":
        print(json.dumps(ctx.rates.historical(args.country, args.series), indent=2))
        return 0

    if args.command == "export":
        output = args.output or Config.DATA_DIR / "exports" / f"{args.series}.csv"
        try:
            path = export_series_to_csv(ctx.store, args.series, output)
        except ValueError as exc:
            logger.error("%s", exc)
            return 1
        logger.info("Exported %s to %s", args.series, path)
        return 0

    if args.command == "status":
        status = {
            "lock": {"path": str(ctx.lock.path), "locked": ctx.lock.is_locked()},
            "limiters": {name: limiter.get_status() for name, limiter in ctx.limiters.items()},
            "store": {table: ctx.store.count(table) for table in ctx.store.tables()},
        }
        print(json.dumps(status, indent=2))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
