"""Seed the plan catalog with the built-in tiers."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import structlog

from planwarden.billing.plans import PLAN_CATALOG
from planwarden.config.logging import setup_logging
from planwarden.config.settings import get_settings
from planwarden.storage.database import get_engine, init_db
from planwarden.storage.repositories.plans import DatabasePlanRepository

if TYPE_CHECKING:
    from planwarden.models.domain import PlanView

logger = structlog.get_logger(__name__)


async def seed_plans(repo: DatabasePlanRepository) -> list[PlanView]:
    """Insert or update every catalog plan; safe to run repeatedly."""
    seeded = []
    for definition in PLAN_CATALOG.values():
        plan = await repo.save_plan(
            definition.as_row(), [feature.as_row() for feature in definition.features]
        )
        seeded.append(plan)
    logger.info("plans_seeded", codes=[p.code for p in seeded])
    return seeded


async def _run(create_tables: bool) -> None:
    engine = get_engine()
    if create_tables:
        await init_db(engine)
    await seed_plans(DatabasePlanRepository(engine))
    await engine.dispose()


def main() -> None:
    """CLI entry point: ``planwarden-seed [--create-tables]``."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=True, component="seed")
    asyncio.run(_run(create_tables="--create-tables" in sys.argv[1:]))


if __name__ == "__main__":
    main()
