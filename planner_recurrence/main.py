"""
Main entry point for the recurrence tooling.

    planner-recurrence migrate [user_id] [--dry-run]
    planner-recurrence refresh [user_id] [--dry-run]

`migrate` moves legacy recurring tasks onto recurring patterns; `refresh`
advances every active pattern's generation horizon to today's.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from planner_recurrence.db.config import Settings, create_store_engine, load_settings
from planner_recurrence.db.init import init_db
from planner_recurrence.db.sql_store import SQLModelStore
from planner_recurrence.errors import ConfigError, StoreError
from planner_recurrence.services.migration_service import MigrationService
from planner_recurrence.services.pattern_service import PatternService
from planner_recurrence.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="planner-recurrence",
        description="Migrate and maintain recurring planner tasks.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Migrate legacy recurring tasks to recurring patterns")
    migrate.add_argument("user_id", nargs="?", help="Only migrate this user's tasks")
    migrate.add_argument("--dry-run", action="store_true", help="Report what would change without writing")

    refresh = subparsers.add_parser("refresh", help="Generate instances up to today's horizon")
    refresh.add_argument("user_id", nargs="?", help="Only refresh this user's patterns")
    refresh.add_argument("--dry-run", action="store_true", help="Report what would change without writing")

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Run one command against the configured store and print its summary."""
    dry_run = args.dry_run or settings.dry_run
    engine = create_store_engine(settings.database_url)
    try:
        init_db(engine)
        store = SQLModelStore(engine)

        if args.command == "migrate":
            service = MigrationService(
                store,
                dry_run=dry_run,
                timezone=settings.timezone,
                generation_days=settings.generation_days,
            )
            result = await service.run(args.user_id)
        else:
            service = PatternService(
                store,
                dry_run=dry_run,
                timezone=settings.timezone,
                generation_days=settings.generation_days,
            )
            result = await service.refresh_patterns(args.user_id)

        logger.info(f"Store metrics: {store.metrics.get_metrics()['counters']}")
    finally:
        engine.dispose()

    print(result.render())
    return result.exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments, load settings and run; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        logger.error(f"Invalid configuration: {e.message}")
        return 1

    configure_logging(settings.log_level)
    logger.info(f"Starting {args.command} ({settings.credential_source} credentials)")

    try:
        return asyncio.run(run(args, settings))
    except (ConfigError, StoreError) as e:
        logger.error(f"{args.command} failed: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
