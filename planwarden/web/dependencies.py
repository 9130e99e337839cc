"""FastAPI dependency injection and shared service wiring."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from fastapi import Request

from planwarden.billing.access import FeatureAccessChecker
from planwarden.billing.catalog import PlanCatalog
from planwarden.billing.plan_changes import PlanChangeOrchestrator
from planwarden.billing.resources import ResourceCounterRegistry
from planwarden.billing.scheduled import ScheduledChangeProcessor
from planwarden.billing.subscriptions import SubscriptionService
from planwarden.billing.usage import UsageCounter
from planwarden.models.database import _utc_now
from planwarden.notifications.sender import build_sender
from planwarden.storage.cache import ReadThroughCache
from planwarden.storage.repositories.plan_change_log import DatabasePlanChangeLogRepository
from planwarden.storage.repositories.plans import DatabasePlanRepository
from planwarden.storage.repositories.subscriptions import DatabaseSubscriptionRepository
from planwarden.storage.repositories.usage import DatabaseUsageRepository
from planwarden.storage.repositories.users import DatabaseUserRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from planwarden.config.settings import Settings
    from planwarden.notifications.sender import NotificationSender

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class Container:
    """Services shared by the API and the scheduler, built once per process."""

    engine: AsyncEngine
    catalog: PlanCatalog
    resources: ResourceCounterRegistry
    notifier: NotificationSender
    users: DatabaseUserRepository
    usage: UsageCounter
    checker: FeatureAccessChecker
    subscriptions: SubscriptionService
    orchestrator: PlanChangeOrchestrator
    processor: ScheduledChangeProcessor


def build_container(
    engine: AsyncEngine,
    settings: Settings,
    *,
    notifier: NotificationSender | None = None,
    resources: ResourceCounterRegistry | None = None,
    clock: Callable[[], datetime] = _utc_now,
) -> Container:
    notifier = notifier or build_sender(settings)
    resources = resources or ResourceCounterRegistry()

    catalog = PlanCatalog(
        DatabasePlanRepository(engine),
        ReadThroughCache(maxsize=64, ttl=settings.plan_cache_ttl_seconds),
    )
    subscription_repo = DatabaseSubscriptionRepository(engine)
    change_log = DatabasePlanChangeLogRepository(engine)
    users = DatabaseUserRepository(engine)
    usage = UsageCounter(DatabaseUsageRepository(engine), resources, clock=clock)

    orchestrator = PlanChangeOrchestrator(
        subscriptions=subscription_repo,
        catalog=catalog,
        change_log=change_log,
        resources=resources,
        notifier=notifier,
        clock=clock,
        grace_period_days=settings.grace_period_days,
        billing_period_days=settings.billing_period_days,
    )
    processor = ScheduledChangeProcessor(
        subscriptions=subscription_repo,
        catalog=catalog,
        change_log=change_log,
        resources=resources,
        users=users,
        notifier=notifier,
        clock=clock,
        grace_period_days=settings.grace_period_days,
        billing_period_days=settings.billing_period_days,
        grace_warning_days=settings.grace_warning_days,
    )
    logger.debug("container_built", dialect=engine.dialect.name)
    return Container(
        engine=engine,
        catalog=catalog,
        resources=resources,
        notifier=notifier,
        users=users,
        usage=usage,
        checker=FeatureAccessChecker(subscription_repo, catalog, usage),
        subscriptions=SubscriptionService(subscription_repo, catalog, usage, clock=clock),
        orchestrator=orchestrator,
        processor=processor,
    )


def get_container(request: Request) -> Container:
    return request.app.state.container  # type: ignore[no-any-return]


def get_orchestrator(request: Request) -> PlanChangeOrchestrator:
    return get_container(request).orchestrator


def get_subscription_service(request: Request) -> SubscriptionService:
    return get_container(request).subscriptions


def get_checker(request: Request) -> FeatureAccessChecker:
    return get_container(request).checker


def get_catalog(request: Request) -> PlanCatalog:
    return get_container(request).catalog
