"""Health check endpoint logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text

from planwarden.exceptions import CatalogError

if TYPE_CHECKING:
    from planwarden.web.dependencies import Container

logger = structlog.get_logger(__name__)


async def check_health(container: Container) -> dict[str, object]:
    """Return application health status with DB and catalog probes."""
    result: dict[str, object] = {
        "status": "healthy",
        "version": "0.1.0",
        "database": "connected",
        "catalog": "ready",
    }

    try:
        async with container.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("health_check_db_failed", error=str(exc))
        result["database"] = "unavailable"
        result["catalog"] = "unknown"
        result["status"] = "degraded"
        return result

    try:
        await container.catalog.get_default()
    except CatalogError:
        result["catalog"] = "missing_default_plan"
        result["status"] = "degraded"

    return result
