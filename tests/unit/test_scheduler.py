"""Unit tests for the subscription scheduler loop and job lock."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from planwarden.billing.scheduled import JobReport
from planwarden.worker.lock import JobLock, _lock_key
from planwarden.worker.runner import GRACE_PERIODS_JOB, SCHEDULED_CHANGES_JOB, SubscriptionScheduler


class _FakeLock:
    def __init__(self, acquired: bool = True) -> None:
        self.acquired = acquired
        self.held: list[str] = []

    @asynccontextmanager
    async def hold(self, name: str):
        self.held.append(name)
        yield self.acquired


def _processor() -> MagicMock:
    processor = MagicMock()
    processor.apply_due_scheduled_changes = AsyncMock(
        return_value=JobReport(job=SCHEDULED_CHANGES_JOB, applied=2)
    )
    processor.handle_grace_periods = AsyncMock(return_value=JobReport(job=GRACE_PERIODS_JOB))
    return processor


@pytest.mark.unit
class TestSubscriptionScheduler:
    async def test_run_once_returns_report(self) -> None:
        processor = _processor()
        lock = _FakeLock()
        scheduler = SubscriptionScheduler(processor, lock)

        report = await scheduler.run_once(SCHEDULED_CHANGES_JOB)

        assert report is not None
        assert report.applied == 2
        assert lock.held == [SCHEDULED_CHANGES_JOB]
        processor.handle_grace_periods.assert_not_awaited()

    async def test_run_once_skips_when_lock_busy(self) -> None:
        processor = _processor()
        scheduler = SubscriptionScheduler(processor, _FakeLock(acquired=False))

        assert await scheduler.run_once(GRACE_PERIODS_JOB) is None
        processor.handle_grace_periods.assert_not_awaited()

    async def test_unknown_job_raises(self) -> None:
        scheduler = SubscriptionScheduler(_processor(), _FakeLock())
        with pytest.raises(KeyError):
            await scheduler.run_once("nightly_backup")

    async def test_loop_survives_job_errors_and_stops(self) -> None:
        processor = _processor()
        processor.apply_due_scheduled_changes.side_effect = RuntimeError("db down")
        scheduler = SubscriptionScheduler(
            processor,
            _FakeLock(),
            scheduled_change_interval=0.01,
            grace_period_interval=0.01,
        )

        task = asyncio.create_task(scheduler._loop(SCHEDULED_CHANGES_JOB))
        await asyncio.sleep(0.05)
        scheduler.shutdown()
        await asyncio.wait_for(task, timeout=1)

        assert processor.apply_due_scheduled_changes.await_count >= 2


@pytest.mark.unit
class TestJobLock:
    def test_lock_key_is_stable(self) -> None:
        assert _lock_key(SCHEDULED_CHANGES_JOB) == _lock_key(SCHEDULED_CHANGES_JOB)
        assert _lock_key(SCHEDULED_CHANGES_JOB) != _lock_key(GRACE_PERIODS_JOB)

    async def test_sqlite_always_acquires(self, async_engine) -> None:
        async with JobLock(async_engine).hold(SCHEDULED_CHANGES_JOB) as acquired:
            assert acquired is True
