"""Plan change log: insert-only history of plan transitions."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy.orm import aliased
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from planwarden.constants import DEFAULT_HISTORY_LIMIT
from planwarden.models.database import Plan, PlanChangeLog
from planwarden.models.domain import PlanChangeLogEntry
from planwarden.types import PlanChangeType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_MAX_METADATA_BYTES = 10_240  # 10KB


def _sanitize_metadata(metadata: dict[str, Any] | None) -> dict[str, Any] | None:
    """Round-trip through JSON so Decimals and datetimes persist as plain values."""
    if not metadata:
        return None
    encoded = json.dumps(metadata, default=str)
    if len(encoded) > _MAX_METADATA_BYTES:
        logger.warning("plan_change_metadata_truncated", size=len(encoded))
        return {"truncated": True}
    return json.loads(encoded)  # type: ignore[no-any-return]


class DatabasePlanChangeLogRepository:
    """Append-only; entries are never updated or deleted."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def record(
        self,
        *,
        user_id: str,
        change_type: PlanChangeType,
        to_plan_id: str,
        from_plan_id: str | None = None,
        requested_at: datetime,
        effective_at: datetime | None = None,
        scheduled_for: datetime | None = None,
        proration_amount: Decimal | None = None,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PlanChangeLog:
        entry = PlanChangeLog(
            user_id=user_id,
            from_plan_id=from_plan_id,
            to_plan_id=to_plan_id,
            change_type=change_type,
            requested_at=requested_at,
            effective_at=effective_at,
            scheduled_for=scheduled_for,
            proration_amount=proration_amount,
            reason=reason,
            details=_sanitize_metadata(metadata),
        )
        async with AsyncSession(self._engine) as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        logger.info(
            "plan_change_logged",
            user_id=user_id,
            change_type=str(change_type),
            from_plan_id=from_plan_id,
            to_plan_id=to_plan_id,
        )
        return entry

    async def list_for_user(
        self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[PlanChangeLogEntry]:
        """Newest first, with plan codes and names resolved."""
        from_plan = aliased(Plan)
        to_plan = aliased(Plan)
        stmt = (
            select(PlanChangeLog, from_plan, to_plan)
            .join(to_plan, col(PlanChangeLog.to_plan_id) == to_plan.id)
            .outerjoin(from_plan, col(PlanChangeLog.from_plan_id) == from_plan.id)
            .where(col(PlanChangeLog.user_id) == user_id)
            .order_by(col(PlanChangeLog.created_at).desc(), col(PlanChangeLog.id).desc())
            .limit(limit)
        )
        async with AsyncSession(self._engine) as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            PlanChangeLogEntry(
                id=log.id,
                change_type=PlanChangeType(log.change_type),
                from_plan_code=source.code if source else None,
                from_plan_name=source.name if source else None,
                to_plan_code=target.code,
                to_plan_name=target.name,
                requested_at=log.requested_at,
                effective_at=log.effective_at,
                scheduled_for=log.scheduled_for,
                proration_amount=log.proration_amount,
                reason=log.reason,
                metadata=log.details,
            )
            for log, source, target in rows
        ]
