"""Cross-process job lock backed by PostgreSQL advisory locks."""

from __future__ import annotations

import zlib
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)


def _lock_key(name: str) -> int:
    # Stable across processes, unlike hash()
    return zlib.crc32(f"planwarden:{name}".encode())


class JobLock:
    """Ensures only one scheduler instance runs a given job at a time.

    On PostgreSQL this takes a session-level ``pg_try_advisory_lock`` held on a
    dedicated connection for the duration of the job. Other dialects have no
    equivalent and are treated as single-instance deployments.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[bool]:
        """Yield True when the lock was acquired, False when another process holds it."""
        if self._engine.dialect.name != "postgresql":
            yield True
            return

        key = _lock_key(name)
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": key})
            acquired = bool(result.scalar())
            if not acquired:
                logger.info("job_lock_busy", job=name)
            try:
                yield acquired
            finally:
                if acquired:
                    await conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
                    await conn.commit()
