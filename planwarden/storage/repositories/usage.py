"""Usage record repository: period-bucketed counters."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import case, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from planwarden.exceptions import StorageError
from planwarden.models.database import UsageRecord, _new_uuid, _utc_now

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class DatabaseUsageRepository:
    """Counters keyed by (user_id, feature_code, period_start).

    Increments are a single atomic upsert so concurrent callers never lose
    an update.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        dialect = engine.dialect.name
        if dialect not in _UPSERT_DIALECTS:
            msg = f"Usage counters need ON CONFLICT support; unsupported dialect {dialect!r}"
            raise StorageError(msg)
        self._insert = _UPSERT_DIALECTS[dialect]

    async def get_count(self, user_id: str, feature_code: str, period_start: datetime) -> int:
        async with AsyncSession(self._engine) as session:
            stmt = select(UsageRecord.count).where(
                col(UsageRecord.user_id) == user_id,
                col(UsageRecord.feature_code) == feature_code,
                col(UsageRecord.period_start) == period_start,
            )
            result = await session.execute(stmt)
            count = result.scalars().first()
            return int(count) if count is not None else 0

    async def increment(
        self,
        *,
        user_id: str,
        feature_code: str,
        period_type: str,
        period_start: datetime,
        period_end: datetime,
        amount: int = 1,
    ) -> int:
        """Atomically add ``amount`` to the period's counter and return the new count."""
        now = _utc_now()
        table = UsageRecord.__table__  # type: ignore[attr-defined]
        stmt = self._insert(table).values(
            id=_new_uuid(),
            user_id=user_id,
            feature_code=feature_code,
            period_type=period_type,
            period_start=period_start,
            period_end=period_end,
            count=amount,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "feature_code", "period_start"],
            set_={"count": table.c["count"] + amount, "updated_at": now},
        ).returning(table.c["count"])
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
            new_count = result.scalar_one()
        logger.debug(
            "usage_incremented", user_id=user_id, feature_code=feature_code, count=new_count
        )
        return int(new_count)

    async def decrement(
        self,
        *,
        user_id: str,
        feature_code: str,
        period_start: datetime,
        amount: int = 1,
    ) -> int | None:
        """Subtract ``amount`` clamped at zero; None when the period has no record."""
        where = (
            col(UsageRecord.user_id) == user_id,
            col(UsageRecord.feature_code) == feature_code,
            col(UsageRecord.period_start) == period_start,
        )
        stmt = (
            update(UsageRecord)
            .where(*where)
            .values(
                count=case(
                    (col(UsageRecord.count) > amount, col(UsageRecord.count) - amount),
                    else_=0,
                ),
                updated_at=_utc_now(),
            )
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
            if result.rowcount == 0:
                return None
            row = await conn.execute(select(UsageRecord.count).where(*where))
            new_count = int(row.scalar_one())
        logger.debug(
            "usage_decremented", user_id=user_id, feature_code=feature_code, count=new_count
        )
        return new_count

    async def list_current(self, user_id: str, now: datetime) -> list[UsageRecord]:
        """All records whose period has not ended yet, in one query."""
        async with AsyncSession(self._engine) as session:
            stmt = select(UsageRecord).where(
                col(UsageRecord.user_id) == user_id,
                col(UsageRecord.period_start) <= now,
                col(UsageRecord.period_end) >= now,
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())
