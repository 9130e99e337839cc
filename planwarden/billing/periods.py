"""Calendar usage periods (UTC).

Each period is identified by its start instant, which is the deduplication
key for usage records. Weeks start on Monday (ISO 8601).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from planwarden.types import LimitPeriod

_END_OFFSET = timedelta(microseconds=1)


def period_start(period: LimitPeriod, at: datetime) -> datetime:
    """Return the first instant of the period containing ``at``."""
    day = at.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == LimitPeriod.DAILY:
        return day
    if period == LimitPeriod.WEEKLY:
        return day - timedelta(days=day.weekday())
    if period == LimitPeriod.MONTHLY:
        return day.replace(day=1)
    if period == LimitPeriod.YEARLY:
        return day.replace(month=1, day=1)
    msg = f"Unknown limit period: {period}"
    raise ValueError(msg)


def next_period_start(period: LimitPeriod, at: datetime) -> datetime:
    start = period_start(period, at)
    if period == LimitPeriod.DAILY:
        return start + timedelta(days=1)
    if period == LimitPeriod.WEEKLY:
        return start + timedelta(weeks=1)
    if period == LimitPeriod.MONTHLY:
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)
    return start.replace(year=start.year + 1)


def period_bounds(period: LimitPeriod, at: datetime) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` where end is the last microsecond of the period."""
    return period_start(period, at), next_period_start(period, at) - _END_OFFSET
