"""Async engine construction for the API, scheduler and seed command."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from planwarden.config.settings import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    # In-memory SQLite gets a static pool that takes no sizing arguments
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(settings.database_url, echo=settings.debug)
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=settings.db_pool_recycle_seconds,
    )


@lru_cache
def get_engine() -> AsyncEngine:
    """Process-wide engine built from the environment settings."""
    return build_engine(get_settings())


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables directly; deployments run the Alembic migrations instead."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
