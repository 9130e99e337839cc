"""Proration and billing-period arithmetic."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from planwarden.constants import BILLING_PERIOD_DAYS

_DAY = timedelta(days=1)
_CENTS = Decimal("0.01")


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta / _DAY)


def calculate_proration(
    *,
    current_price: Decimal,
    target_price: Decimal,
    period_start: datetime,
    period_end: datetime | None,
    now: datetime,
    billing_period_days: int = BILLING_PERIOD_DAYS,
) -> Decimal:
    """Net amount for switching plans mid-period.

    Positive means a credit to the user, negative an additional charge. A
    subscription without a period end (the free plan) prorates to zero.
    """
    if period_end is None:
        return Decimal("0.00")

    days_remaining = max(0, _ceil_days(period_end - now))
    total_days = _ceil_days(period_end - period_start)
    if days_remaining <= 0 or total_days <= 0:
        return Decimal("0.00")

    # credit - charge, multiplied before dividing to keep Decimal exact
    net = (Decimal(current_price) - Decimal(target_price)) * days_remaining
    return (net / billing_period_days).quantize(_CENTS, rounding=ROUND_HALF_UP)


def next_period_end(
    now: datetime, *, is_default_plan: bool, billing_period_days: int = BILLING_PERIOD_DAYS
) -> datetime | None:
    """Period end for a plan starting at ``now``; the default plan never renews."""
    if is_default_plan:
        return None
    return now + timedelta(days=billing_period_days)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days remaining until ``moment`` (rounded up, never negative)."""
    return max(0, _ceil_days(moment - now))
