"""Interval scheduler for the subscription background jobs."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from planwarden.billing.scheduled import JobReport, ScheduledChangeProcessor
    from planwarden.worker.lock import JobLock

logger = structlog.get_logger(__name__)

SCHEDULED_CHANGES_JOB = "scheduled_changes"
GRACE_PERIODS_JOB = "grace_periods"


class SubscriptionScheduler:
    """Runs each job on its own interval until shutdown.

    Handles SIGTERM/SIGINT for graceful shutdown: the current job run
    finishes, then the loops exit.
    """

    def __init__(
        self,
        processor: ScheduledChangeProcessor,
        lock: JobLock,
        scheduled_change_interval: float = 3600.0,
        grace_period_interval: float = 86400.0,
    ) -> None:
        self._processor = processor
        self._lock = lock
        self._jobs: dict[str, tuple[Callable[[], Awaitable[JobReport]], float]] = {
            SCHEDULED_CHANGES_JOB: (
                processor.apply_due_scheduled_changes,
                scheduled_change_interval,
            ),
            GRACE_PERIODS_JOB: (processor.handle_grace_periods, grace_period_interval),
        }
        self._stop = asyncio.Event()

    async def run(self) -> None:
        """Main loop: one task per job."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        logger.info(
            "scheduler_started",
            intervals={name: interval for name, (_, interval) in self._jobs.items()},
        )
        await asyncio.gather(*(self._loop(name) for name in self._jobs))
        logger.info("scheduler_stopped")

    async def run_once(self, name: str) -> JobReport | None:
        """Run one job immediately under the job lock; None if another process holds it."""
        job, _ = self._jobs[name]
        async with self._lock.hold(name) as acquired:
            if not acquired:
                return None
            logger.info("job_started", job=name)
            report = await job()
            logger.info("job_finished", job=name)
            return report

    def shutdown(self) -> None:
        """Signal handler for graceful shutdown."""
        logger.info("scheduler_shutdown_requested")
        self._stop.set()

    async def _loop(self, name: str) -> None:
        _, interval = self._jobs[name]
        while not self._stop.is_set():
            try:
                await self.run_once(name)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("job_run_error", job=name)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
