"""User contact lookup, PostgreSQL-backed.

Users are owned by the identity service; this repository only reads the
fields needed to address notifications from background jobs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from planwarden.models.database import User
from planwarden.models.domain import Contact

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


class DatabaseUserRepository:
    """PostgreSQL-backed user store."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def create(self, email: str, name: str = "", user_id: str | None = None) -> User:
        async with AsyncSession(self._engine) as session:
            user = User(email=email, name=name or email, is_active=True)
            if user_id:
                user.id = user_id
            session.add(user)
            await session.commit()
            await session.refresh(user)
            logger.info("user_created", user_id=user.id, email=email)
            return user

    async def get_by_id(self, user_id: str) -> User | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(User).where(col(User.id) == user_id, col(User.is_active).is_(True))
            result = await session.execute(stmt)
            return result.scalars().first()

    async def get_contact(self, user_id: str) -> Contact | None:
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        return Contact(user_id=user.id, email=user.email, name=user.name or None)
