"""Subscription store, PostgreSQL-backed.

Every mutation is a single ``UPDATE ... WHERE user_id = :user_id AND <guard>``
so a concurrent change to the same row makes the second writer match nothing
instead of silently overwriting the first. Mutators return whether they
updated the row.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from planwarden.models.database import Subscription, _utc_now
from planwarden.types import SubscriptionStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlalchemy.sql.elements import ColumnElement

logger = structlog.get_logger(__name__)


class DatabaseSubscriptionRepository:
    """One subscription row per user, mutated only through guarded updates."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, user_id: str, plan_id: str, now: datetime | None = None) -> Subscription:
        now = now or _utc_now()
        async with AsyncSession(self._engine) as session:
            subscription = Subscription(
                user_id=user_id,
                plan_id=plan_id,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=now,
                current_period_end=None,
                created_at=now,
                updated_at=now,
            )
            session.add(subscription)
            await session.commit()
            await session.refresh(subscription)
            logger.info("subscription_created", user_id=user_id, plan_id=plan_id)
            return subscription

    async def get_by_user_id(self, user_id: str) -> Subscription | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(Subscription).where(col(Subscription.user_id) == user_id)
            result = await session.execute(stmt)
            return result.scalars().first()

    # -- Plan change operations ------------------------------------------------

    async def apply_upgrade(
        self,
        user_id: str,
        *,
        expected_plan_id: str,
        plan_id: str,
        period_start: datetime,
        period_end: datetime | None,
    ) -> bool:
        return await self._update(
            user_id,
            [col(Subscription.plan_id) == expected_plan_id],
            plan_id=plan_id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=period_start,
            current_period_end=period_end,
            scheduled_plan_id=None,
            scheduled_change_at=None,
            cancelled_at=None,
            cancel_reason=None,
            grace_overages=None,
            grace_period_end=None,
        )

    async def schedule_downgrade(
        self,
        user_id: str,
        *,
        expected_plan_id: str,
        scheduled_plan_id: str,
        scheduled_change_at: datetime,
        grace_overages: dict[str, int] | None,
        grace_period_end: datetime | None,
    ) -> bool:
        """Schedule a lower plan; replaces any pending cancellation."""
        return await self._update(
            user_id,
            [col(Subscription.plan_id) == expected_plan_id],
            scheduled_plan_id=scheduled_plan_id,
            scheduled_change_at=scheduled_change_at,
            cancelled_at=None,
            cancel_reason=None,
            grace_overages=grace_overages or None,
            grace_period_end=grace_period_end if grace_overages else None,
        )

    async def schedule_cancellation(
        self,
        user_id: str,
        *,
        expected_plan_id: str,
        default_plan_id: str,
        scheduled_change_at: datetime,
        cancelled_at: datetime,
        reason: str | None,
    ) -> bool:
        return await self._update(
            user_id,
            [
                col(Subscription.plan_id) == expected_plan_id,
                col(Subscription.cancelled_at).is_(None),
            ],
            scheduled_plan_id=default_plan_id,
            scheduled_change_at=scheduled_change_at,
            cancelled_at=cancelled_at,
            cancel_reason=reason,
        )

    async def reactivate(self, user_id: str) -> bool:
        return await self._update(
            user_id,
            [col(Subscription.cancelled_at).is_not(None)],
            scheduled_plan_id=None,
            scheduled_change_at=None,
            cancelled_at=None,
            cancel_reason=None,
            grace_overages=None,
            grace_period_end=None,
        )

    async def clear_scheduled_change(self, user_id: str) -> bool:
        return await self._update(
            user_id,
            [
                col(Subscription.scheduled_plan_id).is_not(None),
                col(Subscription.cancelled_at).is_(None),
            ],
            scheduled_plan_id=None,
            scheduled_change_at=None,
            grace_overages=None,
            grace_period_end=None,
        )

    # -- Scheduled processing --------------------------------------------------

    async def apply_scheduled_change(
        self,
        user_id: str,
        *,
        scheduled_plan_id: str,
        now: datetime,
        period_end: datetime | None,
        grace_overages: dict[str, int] | None,
        grace_period_end: datetime | None,
    ) -> bool:
        """Swap in the scheduled plan if it is still the one scheduled and due."""
        return await self._update(
            user_id,
            [
                col(Subscription.scheduled_plan_id) == scheduled_plan_id,
                col(Subscription.scheduled_change_at) <= now,
            ],
            plan_id=scheduled_plan_id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=now,
            current_period_end=period_end,
            scheduled_plan_id=None,
            scheduled_change_at=None,
            cancelled_at=None,
            cancel_reason=None,
            grace_overages=grace_overages or None,
            grace_period_end=grace_period_end if grace_overages else None,
        )

    async def clear_expired_grace_period(self, user_id: str, now: datetime) -> bool:
        return await self._update(
            user_id,
            [
                col(Subscription.grace_period_end).is_not(None),
                col(Subscription.grace_period_end) < now,
            ],
            grace_overages=None,
            grace_period_end=None,
        )

    async def find_due_scheduled_changes(self, now: datetime) -> list[Subscription]:
        return await self._find(
            col(Subscription.scheduled_plan_id).is_not(None),
            col(Subscription.scheduled_change_at) <= now,
        )

    async def find_grace_periods_ending(self, start: datetime, end: datetime) -> list[Subscription]:
        """Subscriptions whose grace period ends within ``[start, end]``."""
        return await self._find(
            col(Subscription.grace_overages).is_not(None),
            col(Subscription.grace_period_end) >= start,
            col(Subscription.grace_period_end) <= end,
        )

    async def find_expired_grace_periods(self, now: datetime) -> list[Subscription]:
        return await self._find(
            col(Subscription.grace_overages).is_not(None),
            col(Subscription.grace_period_end) < now,
        )

    # -- Internals ---------------------------------------------------------------

    async def _find(self, *conditions: ColumnElement[bool]) -> list[Subscription]:
        async with AsyncSession(self._engine) as session:
            stmt = select(Subscription).where(*conditions).order_by(col(Subscription.user_id))
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _update(
        self, user_id: str, guards: list[ColumnElement[bool]], **values: Any
    ) -> bool:
        stmt = (
            update(Subscription)
            .where(col(Subscription.user_id) == user_id, *guards)
            .values(updated_at=_utc_now(), **values)
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        updated = result.rowcount == 1
        if not updated:
            logger.info("subscription_update_skipped", user_id=user_id, fields=sorted(values))
        return updated
