"""Plan catalog with a read-through TTL cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from planwarden.exceptions import BusinessError, CatalogError
from planwarden.storage.cache import ReadThroughCache
from planwarden.types import ErrorCode

if TYPE_CHECKING:
    from planwarden.models.domain import PlanView
    from planwarden.storage.repositories.plans import DatabasePlanRepository

logger = structlog.get_logger(__name__)


class PlanCatalog:
    """Cached lookups of plans by code, id or default flag.

    Plans change rarely, so reads go through a TTL cache; ``invalidate`` must
    be called after any write to the plans tables.
    """

    def __init__(self, repo: DatabasePlanRepository, cache: ReadThroughCache | None = None) -> None:
        self._repo = repo
        self._cache = cache or ReadThroughCache(maxsize=64, ttl=600)

    async def list_active(self) -> list[PlanView]:
        return await self._cache.get_or_compute("plans:active", self._repo.list_active)

    async def get_by_code(self, code: str) -> PlanView | None:
        return await self._cache.get_or_compute(
            f"plan:code:{code}", lambda: self._repo.get_by_code(code)
        )

    async def get_by_id(self, plan_id: str) -> PlanView | None:
        return await self._cache.get_or_compute(
            f"plan:id:{plan_id}", lambda: self._repo.get_by_id(plan_id)
        )

    async def require_by_code(self, code: str) -> PlanView:
        plan = await self.get_by_code(code)
        if plan is None or not plan.is_active:
            raise BusinessError(
                ErrorCode.PLAN_NOT_FOUND,
                f"Plan '{code}' not found",
                details={"plan_code": code},
            )
        return plan

    async def require_by_id(self, plan_id: str) -> PlanView:
        plan = await self.get_by_id(plan_id)
        if plan is None:
            raise BusinessError(
                ErrorCode.PLAN_NOT_FOUND,
                "Plan not found",
                details={"plan_id": plan_id},
            )
        return plan

    async def get_default(self) -> PlanView:
        """Return the default plan; its absence is a deployment error."""
        plan = await self._cache.get_or_compute("plan:default", self._repo.get_default)
        if plan is None:
            logger.error("default_plan_missing")
            msg = "No default plan configured"
            raise CatalogError(msg)
        return plan

    def invalidate(self) -> None:
        self._cache.invalidate()
        logger.info("plan_catalog_invalidated")
