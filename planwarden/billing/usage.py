"""Period-bucketed consumption counters and the per-user usage report."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from planwarden.billing.periods import period_bounds
from planwarden.billing.resources import ResourceCounterRegistry
from planwarden.models.database import _utc_now
from planwarden.models.domain import FeatureUsage, UsageReport
from planwarden.types import FeatureType, LimitPeriod, LimitType

if TYPE_CHECKING:
    from planwarden.models.domain import PlanFeatureView, PlanView
    from planwarden.storage.repositories.usage import DatabaseUsageRepository

logger = structlog.get_logger(__name__)


class UsageCounter:
    """Counts consumption per user, feature and calendar period.

    Records are never reset: a new period simply starts a new record.
    """

    def __init__(
        self,
        repo: DatabaseUsageRepository,
        resources: ResourceCounterRegistry | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repo = repo
        self._resources = resources or ResourceCounterRegistry()
        self._clock = clock

    async def get_current_usage(
        self, user_id: str, feature_code: str, period_type: LimitPeriod = LimitPeriod.MONTHLY
    ) -> int:
        start, _ = period_bounds(period_type, self._clock())
        return await self._repo.get_count(user_id, feature_code, start)

    async def increment_usage(
        self,
        user_id: str,
        feature_code: str,
        period_type: LimitPeriod = LimitPeriod.MONTHLY,
        amount: int = 1,
    ) -> int:
        if amount < 1:
            msg = "amount must be positive"
            raise ValueError(msg)
        start, end = period_bounds(period_type, self._clock())
        return await self._repo.increment(
            user_id=user_id,
            feature_code=feature_code,
            period_type=str(period_type),
            period_start=start,
            period_end=end,
            amount=amount,
        )

    async def decrement_usage(
        self,
        user_id: str,
        feature_code: str,
        period_type: LimitPeriod = LimitPeriod.MONTHLY,
        amount: int = 1,
    ) -> int | None:
        """Administrative correction; clamps at zero."""
        if amount < 1:
            msg = "amount must be positive"
            raise ValueError(msg)
        start, _ = period_bounds(period_type, self._clock())
        new_count = await self._repo.decrement(
            user_id=user_id, feature_code=feature_code, period_start=start, amount=amount
        )
        if new_count is None:
            logger.info("usage_decrement_no_record", user_id=user_id, feature_code=feature_code)
        return new_count

    async def get_user_usage(self, user_id: str, plan: PlanView) -> UsageReport:
        """Usage against every feature of ``plan``.

        Consumable counts come from one query over the current periods;
        resource counts come from the registered resource counters.
        """
        now = self._clock()
        records = await self._repo.list_current(user_id, now)
        consumed = {(r.feature_code, r.period_type): r for r in records}

        features: list[FeatureUsage] = []
        for feature in plan.features:
            period_type: LimitPeriod | None = None
            period_end: datetime | None = None
            if feature.feature_type == FeatureType.CONSUMABLE:
                period_type = feature.effective_period
                record = consumed.get((feature.feature_code, str(period_type)))
                current = record.count if record else 0
                period_end = record.period_end if record else period_bounds(period_type, now)[1]
            elif feature.limit_type == LimitType.BOOLEAN:
                current = 0
            else:
                current = await self._resources.count(user_id, feature.feature_code)
            features.append(_feature_usage(feature, current, period_type, period_end))

        return UsageReport(plan_code=plan.code, plan_name=plan.name, features=features)


def _feature_usage(
    feature: PlanFeatureView,
    current: int,
    period_type: LimitPeriod | None,
    period_end: datetime | None,
) -> FeatureUsage:
    limit = feature.limit_value
    percentage = 0
    if feature.limit_type == LimitType.COUNT and limit > 0:
        percentage = round(current / limit * 100)
    return FeatureUsage(
        feature_code=feature.feature_code,
        current=current,
        limit=limit,
        limit_type=feature.limit_type,
        feature_type=feature.feature_type,
        period_type=period_type,
        period_end=period_end,
        usage_percentage=percentage,
        limit_reached=feature.limit_type == LimitType.COUNT and current >= limit,
    )
