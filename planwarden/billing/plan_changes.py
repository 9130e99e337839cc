"""Plan change orchestration: preview, upgrade, downgrade, cancel, reactivate.

Upgrades apply immediately with proration. Downgrades and cancellations are
scheduled for the end of the current period and applied later by the
scheduled change processor. Every operation validates before it writes, and
each write is a single guarded update of the subscription row.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from planwarden.billing.overages import detect_overages, overage_map
from planwarden.billing.proration import calculate_proration, next_period_end
from planwarden.billing.subscriptions import build_subscription_view
from planwarden.constants import BILLING_PERIOD_DAYS, DEFAULT_HISTORY_LIMIT, GRACE_PERIOD_DAYS
from planwarden.exceptions import BusinessError
from planwarden.models.database import _utc_now
from planwarden.models.domain import (
    CancelResult,
    CancelScheduledResult,
    DowngradeResult,
    PlanChangePreview,
    ReactivateResult,
    UpgradeResult,
)
from planwarden.notifications import formatting
from planwarden.notifications.sender import deliver
from planwarden.types import ChangeDirection, ErrorCode, NotificationTemplate, PlanChangeType

if TYPE_CHECKING:
    from planwarden.billing.catalog import PlanCatalog
    from planwarden.billing.resources import ResourceCounterRegistry
    from planwarden.models.database import Subscription
    from planwarden.models.domain import PlanChangeLogEntry, PlanView, SubscriptionView
    from planwarden.notifications.sender import NotificationSender
    from planwarden.storage.repositories.plan_change_log import DatabasePlanChangeLogRepository
    from planwarden.storage.repositories.subscriptions import DatabaseSubscriptionRepository

logger = structlog.get_logger(__name__)


def _concurrent_change(user_id: str) -> BusinessError:
    return BusinessError(
        ErrorCode.CONCURRENT_PLAN_CHANGE,
        "The subscription was changed by another request; please retry",
        details={"user_id": user_id},
    )


class PlanChangeOrchestrator:
    def __init__(
        self,
        *,
        subscriptions: DatabaseSubscriptionRepository,
        catalog: PlanCatalog,
        change_log: DatabasePlanChangeLogRepository,
        resources: ResourceCounterRegistry,
        notifier: NotificationSender,
        clock: Callable[[], datetime] = _utc_now,
        grace_period_days: int = GRACE_PERIOD_DAYS,
        billing_period_days: int = BILLING_PERIOD_DAYS,
    ) -> None:
        self._subscriptions = subscriptions
        self._catalog = catalog
        self._change_log = change_log
        self._resources = resources
        self._notifier = notifier
        self._clock = clock
        self._grace_period = timedelta(days=grace_period_days)
        self._billing_period_days = billing_period_days

    # -- Read-only ---------------------------------------------------------------

    async def preview_plan_change(self, user_id: str, target_code: str) -> PlanChangePreview:
        subscription, current, target = await self._load_change(user_id, target_code)
        now = self._clock()

        if target.sort_order > current.sort_order:
            return PlanChangePreview(
                current_plan=current,
                target_plan=target,
                change_type=ChangeDirection.UPGRADE,
                immediate=True,
                proration_amount=self._proration(subscription, current, target, now),
            )

        effective_at = subscription.current_period_end or now
        overages = await detect_overages(self._resources, user_id, target)
        return PlanChangePreview(
            current_plan=current,
            target_plan=target,
            change_type=ChangeDirection.DOWNGRADE,
            immediate=False,
            effective_at=effective_at,
            overages=overages,
            has_overages=bool(overages),
            grace_period_end=effective_at + self._grace_period if overages else None,
        )

    async def get_plan_change_history(
        self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[PlanChangeLogEntry]:
        return await self._change_log.list_for_user(user_id, limit=limit)

    # -- Mutations ---------------------------------------------------------------

    async def upgrade_plan(
        self, user_id: str, target_code: str, email: str | None, name: str | None = None
    ) -> UpgradeResult:
        subscription, current, target = await self._load_change(user_id, target_code)
        if target.sort_order <= current.sort_order:
            raise BusinessError(
                ErrorCode.NOT_AN_UPGRADE,
                f"'{target.code}' is not an upgrade from '{current.code}'. Use downgrade instead.",
                details={"current_plan": current.code, "target_plan": target.code},
            )

        now = self._clock()
        proration = self._proration(subscription, current, target, now)
        updated = await self._subscriptions.apply_upgrade(
            user_id,
            expected_plan_id=current.id,
            plan_id=target.id,
            period_start=now,
            period_end=next_period_end(
                now,
                is_default_plan=target.is_default,
                billing_period_days=self._billing_period_days,
            ),
        )
        if not updated:
            raise _concurrent_change(user_id)

        await self._change_log.record(
            user_id=user_id,
            change_type=PlanChangeType.UPGRADE,
            from_plan_id=current.id,
            to_plan_id=target.id,
            requested_at=now,
            effective_at=now,
            proration_amount=proration,
        )
        logger.info(
            "plan_upgraded",
            user_id=user_id,
            from_plan=current.code,
            to_plan=target.code,
            proration=str(proration),
        )
        await deliver(
            self._notifier,
            NotificationTemplate.PLAN_UPGRADED,
            email,
            formatting.upgraded_variables(
                name=name, email=email, previous=current, new=target, effective_at=now
            ),
        )
        return UpgradeResult(
            message=f"Successfully upgraded to {target.name}",
            subscription=await self._view(user_id),
            proration_amount=proration,
        )

    async def downgrade_plan(
        self, user_id: str, target_code: str, email: str | None, name: str | None = None
    ) -> DowngradeResult:
        subscription, current, target = await self._load_change(user_id, target_code)
        if target.sort_order >= current.sort_order:
            raise BusinessError(
                ErrorCode.NOT_A_DOWNGRADE,
                f"'{target.code}' is not a downgrade from '{current.code}'. Use upgrade instead.",
                details={"current_plan": current.code, "target_plan": target.code},
            )

        now = self._clock()
        scheduled_at = subscription.current_period_end or now
        overages = await detect_overages(self._resources, user_id, target)
        grace_end = scheduled_at + self._grace_period if overages else None

        updated = await self._subscriptions.schedule_downgrade(
            user_id,
            expected_plan_id=current.id,
            scheduled_plan_id=target.id,
            scheduled_change_at=scheduled_at,
            grace_overages=overage_map(overages),
            grace_period_end=grace_end,
        )
        if not updated:
            raise _concurrent_change(user_id)

        await self._change_log.record(
            user_id=user_id,
            change_type=PlanChangeType.DOWNGRADE_SCHEDULED,
            from_plan_id=current.id,
            to_plan_id=target.id,
            requested_at=now,
            scheduled_for=scheduled_at,
            metadata={
                "overages": [o.model_dump() for o in overages],
                "grace_period_end": grace_end,
            },
        )
        logger.info(
            "plan_downgrade_scheduled",
            user_id=user_id,
            from_plan=current.code,
            to_plan=target.code,
            scheduled_for=scheduled_at.isoformat(),
            overages=len(overages),
        )
        await deliver(
            self._notifier,
            NotificationTemplate.PLAN_DOWNGRADE_SCHEDULED,
            email,
            formatting.downgrade_variables(
                name=name,
                email=email,
                current=current,
                target=target,
                effective_at=scheduled_at,
                overages=overages,
                grace_period_end=grace_end,
            ),
        )
        return DowngradeResult(
            message=(
                f"Downgrade to {target.name} scheduled for "
                f"{formatting.format_date(scheduled_at)}"
            ),
            subscription=await self._view(user_id),
            scheduled_for=scheduled_at,
            target_plan_code=target.code,
            overages=overages,
            grace_period_end=grace_end,
        )

    async def cancel_subscription(
        self, user_id: str, reason: str | None, email: str | None, name: str | None = None
    ) -> CancelResult:
        subscription = await self._require_subscription(user_id)
        current = await self._catalog.require_by_id(subscription.plan_id)
        default_plan = await self._catalog.get_default()
        if current.id == default_plan.id:
            raise BusinessError(
                ErrorCode.CANNOT_CANCEL_FREE_PLAN, "The free plan cannot be cancelled"
            )
        if subscription.cancelled_at is not None:
            raise BusinessError(
                ErrorCode.SUBSCRIPTION_ALREADY_CANCELLED,
                "The subscription is already scheduled for cancellation",
            )

        now = self._clock()
        effective_at = subscription.current_period_end or now
        updated = await self._subscriptions.schedule_cancellation(
            user_id,
            expected_plan_id=current.id,
            default_plan_id=default_plan.id,
            scheduled_change_at=effective_at,
            cancelled_at=now,
            reason=reason,
        )
        if not updated:
            raise _concurrent_change(user_id)

        await self._change_log.record(
            user_id=user_id,
            change_type=PlanChangeType.CANCELLATION,
            from_plan_id=current.id,
            to_plan_id=default_plan.id,
            requested_at=now,
            scheduled_for=effective_at,
            reason=reason,
        )
        logger.info(
            "subscription_cancelled",
            user_id=user_id,
            plan=current.code,
            effective_at=effective_at.isoformat(),
        )
        await deliver(
            self._notifier,
            NotificationTemplate.SUBSCRIPTION_CANCELLED,
            email,
            formatting.cancelled_variables(
                name=name, email=email, current=current, effective_at=effective_at
            ),
        )
        return CancelResult(
            message=(
                f"Subscription cancelled. You keep {current.name} features until "
                f"{formatting.format_date(effective_at)}"
            ),
            cancelled_at=now,
            effective_at=effective_at,
        )

    async def reactivate_subscription(self, user_id: str) -> ReactivateResult:
        subscription = await self._require_subscription(user_id)
        if subscription.cancelled_at is None:
            raise BusinessError(
                ErrorCode.NO_PENDING_CANCELLATION, "There is no pending cancellation to undo"
            )

        now = self._clock()
        if not await self._subscriptions.reactivate(user_id):
            raise _concurrent_change(user_id)

        await self._change_log.record(
            user_id=user_id,
            change_type=PlanChangeType.REACTIVATION,
            from_plan_id=subscription.plan_id,
            to_plan_id=subscription.plan_id,
            requested_at=now,
            effective_at=now,
        )
        logger.info("subscription_reactivated", user_id=user_id)
        return ReactivateResult(
            message="Subscription reactivated", subscription=await self._view(user_id)
        )

    async def cancel_scheduled_change(self, user_id: str) -> CancelScheduledResult:
        subscription = await self._require_subscription(user_id)
        if subscription.scheduled_plan_id is None:
            raise BusinessError(ErrorCode.NO_SCHEDULED_CHANGE, "There is no scheduled plan change")
        if subscription.cancelled_at is not None:
            raise BusinessError(
                ErrorCode.SUBSCRIPTION_ALREADY_CANCELLED,
                "The scheduled change is a cancellation; reactivate the subscription instead",
            )

        if not await self._subscriptions.clear_scheduled_change(user_id):
            raise _concurrent_change(user_id)

        logger.info(
            "scheduled_change_cancelled",
            user_id=user_id,
            scheduled_plan_id=subscription.scheduled_plan_id,
        )
        return CancelScheduledResult(
            message="Scheduled plan change cancelled", subscription=await self._view(user_id)
        )

    # -- Internals ---------------------------------------------------------------

    async def _require_subscription(self, user_id: str) -> Subscription:
        subscription = await self._subscriptions.get_by_user_id(user_id)
        if subscription is None:
            raise BusinessError(ErrorCode.NO_SUBSCRIPTION, "No subscription found for user")
        return subscription

    async def _load_change(
        self, user_id: str, target_code: str
    ) -> tuple[Subscription, PlanView, PlanView]:
        subscription = await self._require_subscription(user_id)
        target = await self._catalog.require_by_code(target_code)
        current = await self._catalog.require_by_id(subscription.plan_id)
        if current.code == target.code:
            raise BusinessError(
                ErrorCode.ALREADY_ON_PLAN,
                f"You are already on the {current.name} plan",
                details={"plan_code": current.code},
            )
        return subscription, current, target

    def _proration(
        self, subscription: Subscription, current: PlanView, target: PlanView, now: datetime
    ) -> Decimal:
        return calculate_proration(
            current_price=current.price_monthly,
            target_price=target.price_monthly,
            period_start=subscription.current_period_start,
            period_end=subscription.current_period_end,
            now=now,
            billing_period_days=self._billing_period_days,
        )

    async def _view(self, user_id: str) -> SubscriptionView:
        subscription = await self._require_subscription(user_id)
        return await build_subscription_view(self._catalog, subscription)
