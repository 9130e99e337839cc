"""Subscription and plan change API routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query

from planwarden.billing.access import FeatureAccessChecker
from planwarden.billing.plan_changes import PlanChangeOrchestrator
from planwarden.billing.subscriptions import SubscriptionService
from planwarden.constants import DEFAULT_HISTORY_LIMIT
from planwarden.models.api import CancelSubscriptionRequest, ChangePlanRequest
from planwarden.models.domain import (
    CancelResult,
    CancelScheduledResult,
    DowngradeResult,
    FeatureCheckResult,
    PlanChangeLogEntry,
    PlanChangePreview,
    ReactivateResult,
    SubscriptionView,
    UpgradeResult,
    UsageReport,
)
from planwarden.web.dependencies import get_checker, get_orchestrator, get_subscription_service
from planwarden.web.identity import UserContext, get_current_user

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("/current", response_model=SubscriptionView)
async def get_current_subscription(
    user: UserContext = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionView:
    return await service.get_subscription(user.user_id)


@router.get("/usage", response_model=UsageReport)
async def get_usage(
    user: UserContext = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
) -> UsageReport:
    return await service.get_usage_report(user.user_id)


@router.get("/features/{feature_code}", response_model=FeatureCheckResult)
async def check_feature(
    feature_code: str,
    resource_count: int | None = Query(default=None, ge=0),
    user: UserContext = Depends(get_current_user),
    checker: FeatureAccessChecker = Depends(get_checker),
) -> FeatureCheckResult:
    return await checker.check_feature_access(user.user_id, feature_code, resource_count)


@router.get("/preview", response_model=PlanChangePreview)
async def preview_plan_change(
    plan_code: str = Query(min_length=1, max_length=50),
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> PlanChangePreview:
    return await orchestrator.preview_plan_change(user.user_id, plan_code)


@router.post("/upgrade", response_model=UpgradeResult)
async def upgrade_plan(
    body: ChangePlanRequest,
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> UpgradeResult:
    return await orchestrator.upgrade_plan(user.user_id, body.plan_code, user.email, user.name)


@router.post("/downgrade", response_model=DowngradeResult)
async def downgrade_plan(
    body: ChangePlanRequest,
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> DowngradeResult:
    return await orchestrator.downgrade_plan(user.user_id, body.plan_code, user.email, user.name)


@router.post("/cancel", response_model=CancelResult)
async def cancel_subscription(
    body: CancelSubscriptionRequest,
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> CancelResult:
    return await orchestrator.cancel_subscription(user.user_id, body.reason, user.email, user.name)


@router.post("/reactivate", response_model=ReactivateResult)
async def reactivate_subscription(
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> ReactivateResult:
    return await orchestrator.reactivate_subscription(user.user_id)


@router.delete("/scheduled", response_model=CancelScheduledResult)
async def cancel_scheduled_change(
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> CancelScheduledResult:
    return await orchestrator.cancel_scheduled_change(user.user_id)


@router.get("/history", response_model=list[PlanChangeLogEntry])
async def get_plan_change_history(
    limit: int = Query(default=DEFAULT_HISTORY_LIMIT, ge=1, le=100),
    user: UserContext = Depends(get_current_user),
    orchestrator: PlanChangeOrchestrator = Depends(get_orchestrator),
) -> list[PlanChangeLogEntry]:
    return await orchestrator.get_plan_change_history(user.user_id, limit=limit)
