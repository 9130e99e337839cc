"""Plan catalog repository, PostgreSQL-backed."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from planwarden.models.database import Plan, PlanFeature, _utc_now
from planwarden.models.domain import PlanFeatureView, PlanView

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


def _to_view(plan: Plan, features: Sequence[PlanFeature]) -> PlanView:
    return PlanView(
        id=plan.id,
        code=plan.code,
        name=plan.name,
        description=plan.description,
        price_monthly=plan.price_monthly,
        price_yearly=plan.price_yearly,
        price_currency=plan.price_currency,
        is_default=plan.is_default,
        sort_order=plan.sort_order,
        is_active=plan.is_active,
        features=tuple(PlanFeatureView.model_validate(f) for f in features),
    )


class DatabasePlanRepository:
    """Reads plans with their feature rows as detached ``PlanView`` snapshots."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def list_active(self) -> list[PlanView]:
        stmt = select(Plan).where(col(Plan.is_active).is_(True)).order_by(col(Plan.sort_order))
        return await self._load(stmt)

    async def get_by_code(self, code: str) -> PlanView | None:
        plans = await self._load(select(Plan).where(col(Plan.code) == code))
        return plans[0] if plans else None

    async def get_by_id(self, plan_id: str) -> PlanView | None:
        plans = await self._load(select(Plan).where(col(Plan.id) == plan_id))
        return plans[0] if plans else None

    async def get_default(self) -> PlanView | None:
        stmt = select(Plan).where(col(Plan.is_default).is_(True)).order_by(col(Plan.sort_order))
        plans = await self._load(stmt.limit(1))
        return plans[0] if plans else None

    async def save_plan(self, values: dict[str, Any], features: list[dict[str, Any]]) -> PlanView:
        """Insert or update a plan by code and replace its feature rows."""
        async with AsyncSession(self._engine) as session:
            result = await session.execute(select(Plan).where(col(Plan.code) == values["code"]))
            plan = result.scalars().first()
            if plan is None:
                plan = Plan(**values)
            else:
                for key, value in values.items():
                    setattr(plan, key, value)
                plan.updated_at = _utc_now()
            session.add(plan)
            await session.flush()

            existing = await session.execute(
                select(PlanFeature).where(col(PlanFeature.plan_id) == plan.id)
            )
            for row in existing.scalars().all():
                await session.delete(row)
            await session.flush()

            rows = [PlanFeature(plan_id=plan.id, **feature) for feature in features]
            session.add_all(rows)
            await session.flush()
            view = _to_view(plan, rows)
            await session.commit()
        logger.info("plan_saved", code=view.code, features=len(rows))
        return view

    async def _load(self, stmt: Any) -> list[PlanView]:
        async with AsyncSession(self._engine) as session:
            result = await session.execute(stmt)
            plans = list(result.scalars().all())
            if not plans:
                return []
            feature_result = await session.execute(
                select(PlanFeature).where(col(PlanFeature.plan_id).in_([p.id for p in plans]))
            )
            by_plan: dict[str, list[PlanFeature]] = defaultdict(list)
            for feature in feature_result.scalars().all():
                by_plan[feature.plan_id].append(feature)
            return [_to_view(plan, by_plan[plan.id]) for plan in plans]
