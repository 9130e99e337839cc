"""Plan catalog API routes (public)."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from planwarden.billing.catalog import PlanCatalog
from planwarden.models.domain import PlanView
from planwarden.web.dependencies import get_catalog

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/plans", tags=["plans"])


@router.get("", response_model=list[PlanView])
async def list_plans(catalog: PlanCatalog = Depends(get_catalog)) -> list[PlanView]:
    return await catalog.list_active()


@router.get("/{code}", response_model=PlanView)
async def get_plan(code: str, catalog: PlanCatalog = Depends(get_catalog)) -> PlanView:
    return await catalog.require_by_code(code)
