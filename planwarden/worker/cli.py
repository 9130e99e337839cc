"""CLI entry point for the subscription scheduler."""

from __future__ import annotations

import argparse
import asyncio

import structlog

from planwarden.config.logging import setup_logging
from planwarden.config.settings import get_settings
from planwarden.storage.database import get_engine
from planwarden.web.dependencies import build_container
from planwarden.worker.lock import JobLock
from planwarden.worker.runner import GRACE_PERIODS_JOB, SCHEDULED_CHANGES_JOB, SubscriptionScheduler

logger = structlog.get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="planwarden-scheduler")
    parser.add_argument(
        "--once",
        choices=[SCHEDULED_CHANGES_JOB, GRACE_PERIODS_JOB],
        help="Run a single job and exit (for external cron).",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> None:
    settings = get_settings()
    engine = get_engine()
    container = build_container(engine, settings)
    scheduler = SubscriptionScheduler(
        container.processor,
        JobLock(engine),
        scheduled_change_interval=settings.scheduled_change_interval_seconds,
        grace_period_interval=settings.grace_period_interval_seconds,
    )
    try:
        if args.once:
            report = await scheduler.run_once(args.once)
            logger.info("job_report", job=args.once, report=report)
        else:
            await scheduler.run()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> None:
    """Start the subscription scheduler."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=True, component="scheduler")
    asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    main()
