"""Background jobs that apply deferred plan changes and expire grace periods."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from planwarden.billing.overages import detect_overages, overage_map
from planwarden.billing.proration import days_until, next_period_end
from planwarden.constants import BILLING_PERIOD_DAYS, GRACE_PERIOD_DAYS, GRACE_WARNING_DAYS
from planwarden.models.database import _utc_now
from planwarden.notifications import formatting
from planwarden.notifications.sender import deliver
from planwarden.types import NotificationTemplate, PlanChangeType

if TYPE_CHECKING:
    from planwarden.billing.catalog import PlanCatalog
    from planwarden.billing.resources import ResourceCounterRegistry
    from planwarden.models.database import Subscription
    from planwarden.notifications.sender import NotificationSender
    from planwarden.storage.repositories.plan_change_log import DatabasePlanChangeLogRepository
    from planwarden.storage.repositories.subscriptions import DatabaseSubscriptionRepository
    from planwarden.storage.repositories.users import DatabaseUserRepository

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class JobReport:
    """Outcome counters for one job run."""

    job: str
    applied: int = 0
    skipped: int = 0
    warned: int = 0
    expired: int = 0
    failed: int = 0


class ScheduledChangeProcessor:
    """Runs the two periodic subscription jobs.

    Both jobs are safe to re-run: applying a change and clearing a grace
    period are conditional updates, so a second run finds nothing to do.
    """

    def __init__(
        self,
        *,
        subscriptions: DatabaseSubscriptionRepository,
        catalog: PlanCatalog,
        change_log: DatabasePlanChangeLogRepository,
        resources: ResourceCounterRegistry,
        users: DatabaseUserRepository,
        notifier: NotificationSender,
        clock: Callable[[], datetime] = _utc_now,
        grace_period_days: int = GRACE_PERIOD_DAYS,
        billing_period_days: int = BILLING_PERIOD_DAYS,
        grace_warning_days: int = GRACE_WARNING_DAYS,
    ) -> None:
        self._subscriptions = subscriptions
        self._catalog = catalog
        self._change_log = change_log
        self._resources = resources
        self._users = users
        self._notifier = notifier
        self._clock = clock
        self._grace_period = timedelta(days=grace_period_days)
        self._billing_period_days = billing_period_days
        self._warning_window = timedelta(days=grace_warning_days)

    async def apply_due_scheduled_changes(self) -> JobReport:
        report = JobReport(job="scheduled_changes")
        now = self._clock()
        due = await self._subscriptions.find_due_scheduled_changes(now)
        logger.info("scheduled_changes_found", count=len(due))

        for subscription in due:
            try:
                if await self._apply_one(subscription, now):
                    report.applied += 1
                else:
                    report.skipped += 1
            except Exception:
                report.failed += 1
                logger.exception("scheduled_change_failed", user_id=subscription.user_id)

        logger.info(
            "scheduled_changes_processed",
            applied=report.applied,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    async def handle_grace_periods(self) -> JobReport:
        report = JobReport(job="grace_periods")
        now = self._clock()

        ending = await self._subscriptions.find_grace_periods_ending(
            now, now + self._warning_window
        )
        for subscription in ending:
            try:
                if await self._warn(subscription, now):
                    report.warned += 1
            except Exception:
                report.failed += 1
                logger.exception("grace_period_warning_failed", user_id=subscription.user_id)

        expired = await self._subscriptions.find_expired_grace_periods(now)
        for subscription in expired:
            try:
                if await self._expire(subscription, now):
                    report.expired += 1
                else:
                    report.skipped += 1
            except Exception:
                report.failed += 1
                logger.exception("grace_period_expiry_failed", user_id=subscription.user_id)

        logger.info(
            "grace_periods_processed",
            warned=report.warned,
            expired=report.expired,
            failed=report.failed,
        )
        return report

    async def _apply_one(self, subscription: Subscription, now: datetime) -> bool:
        user_id = subscription.user_id
        scheduled_plan_id = subscription.scheduled_plan_id
        if scheduled_plan_id is None:
            return False

        previous = await self._catalog.require_by_id(subscription.plan_id)
        scheduled = await self._catalog.require_by_id(scheduled_plan_id)
        default_plan = await self._catalog.get_default()
        is_cancellation = scheduled.id == default_plan.id

        overages = await detect_overages(self._resources, user_id, scheduled)
        grace_map = overage_map(overages)
        grace_end = now + self._grace_period if overages else None

        applied = await self._subscriptions.apply_scheduled_change(
            user_id,
            scheduled_plan_id=scheduled.id,
            now=now,
            period_end=next_period_end(
                now,
                is_default_plan=scheduled.is_default,
                billing_period_days=self._billing_period_days,
            ),
            grace_overages=grace_map,
            grace_period_end=grace_end,
        )
        if not applied:
            logger.info("scheduled_change_already_applied", user_id=user_id)
            return False

        await self._change_log.record(
            user_id=user_id,
            change_type=(
                PlanChangeType.CANCELLATION_APPLIED
                if is_cancellation
                else PlanChangeType.DOWNGRADE_APPLIED
            ),
            from_plan_id=previous.id,
            to_plan_id=scheduled.id,
            requested_at=now,
            effective_at=now,
            metadata={"had_overages": bool(overages), "overages": grace_map},
        )
        logger.info(
            "scheduled_change_applied",
            user_id=user_id,
            from_plan=previous.code,
            to_plan=scheduled.code,
            cancellation=is_cancellation,
            overages=len(overages),
        )

        contact = await self._users.get_contact(user_id)
        if contact is None:
            logger.warning("scheduled_change_contact_missing", user_id=user_id)
            return True

        if is_cancellation:
            await deliver(
                self._notifier,
                NotificationTemplate.SUBSCRIPTION_CANCELLED,
                contact.email,
                formatting.cancelled_variables(
                    name=contact.name, email=contact.email, current=previous, effective_at=now
                ),
            )
        else:
            await deliver(
                self._notifier,
                NotificationTemplate.PLAN_DOWNGRADE_SCHEDULED,
                contact.email,
                formatting.downgrade_variables(
                    name=contact.name,
                    email=contact.email,
                    current=previous,
                    target=scheduled,
                    effective_at=now,
                    overages=overages,
                    grace_period_end=grace_end,
                ),
            )
        return True

    async def _warn(self, subscription: Subscription, now: datetime) -> bool:
        grace_end = subscription.grace_period_end
        if grace_end is None or not subscription.grace_overages:
            return False
        contact = await self._users.get_contact(subscription.user_id)
        if contact is None:
            logger.warning("grace_warning_contact_missing", user_id=subscription.user_id)
            return False

        plan = await self._catalog.require_by_id(subscription.plan_id)
        return await deliver(
            self._notifier,
            NotificationTemplate.GRACE_PERIOD_WARNING,
            contact.email,
            formatting.grace_warning_variables(
                name=contact.name,
                email=contact.email,
                grace_period_end=grace_end,
                days_remaining=days_until(grace_end, now),
                overages=formatting.grace_overage_rows(plan, subscription.grace_overages),
            ),
        )

    async def _expire(self, subscription: Subscription, now: datetime) -> bool:
        # Snapshot before clearing; the row loses its overages on update
        grace_overages = dict(subscription.grace_overages or {})
        if not await self._subscriptions.clear_expired_grace_period(subscription.user_id, now):
            return False
        logger.info(
            "grace_period_expired",
            user_id=subscription.user_id,
            features=sorted(grace_overages),
        )

        contact = await self._users.get_contact(subscription.user_id)
        if contact is None:
            logger.warning("grace_expiry_contact_missing", user_id=subscription.user_id)
            return True
        plan = await self._catalog.require_by_id(subscription.plan_id)
        await deliver(
            self._notifier,
            NotificationTemplate.GRACE_PERIOD_EXPIRED,
            contact.email,
            formatting.grace_expired_variables(
                name=contact.name,
                email=contact.email,
                overages=formatting.grace_overage_rows(plan, grace_overages),
            ),
        )
        return True
