"""Subscription lifecycle entry points and read models."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from planwarden.exceptions import BusinessError
from planwarden.models.database import _utc_now
from planwarden.models.domain import SubscriptionView
from planwarden.types import ErrorCode, SubscriptionStatus

if TYPE_CHECKING:
    from planwarden.billing.catalog import PlanCatalog
    from planwarden.billing.usage import UsageCounter
    from planwarden.models.database import Subscription
    from planwarden.models.domain import UsageReport
    from planwarden.storage.repositories.subscriptions import DatabaseSubscriptionRepository

logger = structlog.get_logger(__name__)


async def build_subscription_view(
    catalog: PlanCatalog, subscription: Subscription
) -> SubscriptionView:
    plan = await catalog.require_by_id(subscription.plan_id)
    scheduled = (
        await catalog.require_by_id(subscription.scheduled_plan_id)
        if subscription.scheduled_plan_id
        else None
    )
    return SubscriptionView(
        id=subscription.id,
        user_id=subscription.user_id,
        status=SubscriptionStatus(subscription.status),
        plan=plan,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        trial_start=subscription.trial_start,
        trial_end=subscription.trial_end,
        scheduled_plan=scheduled,
        scheduled_change_at=subscription.scheduled_change_at,
        cancelled_at=subscription.cancelled_at,
        cancel_reason=subscription.cancel_reason,
        grace_overages=subscription.grace_overages,
        grace_period_end=subscription.grace_period_end,
    )


class SubscriptionService:
    def __init__(
        self,
        subscriptions: DatabaseSubscriptionRepository,
        catalog: PlanCatalog,
        usage: UsageCounter,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._subscriptions = subscriptions
        self._catalog = catalog
        self._usage = usage
        self._clock = clock

    async def create_for_new_user(self, user_id: str) -> SubscriptionView:
        """Put a newly registered user on the default plan (idempotent)."""
        existing = await self._subscriptions.get_by_user_id(user_id)
        if existing is not None:
            return await build_subscription_view(self._catalog, existing)
        default_plan = await self._catalog.get_default()
        subscription = await self._subscriptions.create(
            user_id, default_plan.id, now=self._clock()
        )
        return await build_subscription_view(self._catalog, subscription)

    async def has_subscription(self, user_id: str) -> bool:
        return await self._subscriptions.get_by_user_id(user_id) is not None

    async def get_subscription(self, user_id: str) -> SubscriptionView:
        subscription = await self._subscriptions.get_by_user_id(user_id)
        if subscription is None:
            raise BusinessError(ErrorCode.NO_SUBSCRIPTION, "No subscription found for user")
        return await build_subscription_view(self._catalog, subscription)

    async def get_usage_report(self, user_id: str) -> UsageReport:
        subscription = await self.get_subscription(user_id)
        return await self._usage.get_user_usage(user_id, subscription.plan)
