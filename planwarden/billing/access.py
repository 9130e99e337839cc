"""Feature access decisions against the user's current plan."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from planwarden.exceptions import BusinessError
from planwarden.models.domain import FeatureCheckResult
from planwarden.types import DenialReason, ErrorCode, FeatureType, LimitType

if TYPE_CHECKING:
    from planwarden.billing.catalog import PlanCatalog
    from planwarden.billing.usage import UsageCounter
    from planwarden.models.domain import PlanFeatureView
    from planwarden.storage.repositories.subscriptions import DatabaseSubscriptionRepository

logger = structlog.get_logger(__name__)

_NOT_AVAILABLE = FeatureCheckResult(
    allowed=False, current=0, limit=0, reason=DenialReason.FEATURE_NOT_AVAILABLE
)


def decide_access(feature: PlanFeatureView | None, observed: int | None) -> FeatureCheckResult:
    """Pure decision for one feature row given the observed count.

    ``observed`` is the live resource count for RESOURCE features and the
    current-period usage for CONSUMABLE ones.
    """
    if feature is None:
        return _NOT_AVAILABLE

    current = observed or 0
    if feature.limit_type == LimitType.UNLIMITED:
        return FeatureCheckResult(allowed=True, current=current, limit=-1)

    if feature.limit_type == LimitType.BOOLEAN:
        allowed = feature.limit_value == 1
        return FeatureCheckResult(
            allowed=allowed,
            current=0,
            limit=feature.limit_value,
            reason=None if allowed else DenialReason.FEATURE_NOT_AVAILABLE,
        )

    if feature.limit_type == LimitType.COUNT:
        allowed = current < feature.limit_value
        return FeatureCheckResult(
            allowed=allowed,
            current=current,
            limit=feature.limit_value,
            reason=None if allowed else DenialReason.FEATURE_LIMIT_EXCEEDED,
        )

    return FeatureCheckResult(
        allowed=False, current=0, limit=0, reason=DenialReason.UNKNOWN_LIMIT_TYPE
    )


class FeatureAccessChecker:
    """Answers "may this user use feature X now?".

    Checks never reserve capacity: a check followed by resource creation is
    not atomic, so concurrent creators may overshoot a RESOURCE limit.
    """

    def __init__(
        self,
        subscriptions: DatabaseSubscriptionRepository,
        catalog: PlanCatalog,
        usage: UsageCounter,
    ) -> None:
        self._subscriptions = subscriptions
        self._catalog = catalog
        self._usage = usage

    async def get_user_plan_feature(
        self, user_id: str, feature_code: str
    ) -> PlanFeatureView | None:
        subscription = await self._subscriptions.get_by_user_id(user_id)
        if subscription is None:
            return None
        plan = await self._catalog.get_by_id(subscription.plan_id)
        if plan is None:
            return None
        return plan.feature(feature_code)

    async def check_feature_access(
        self, user_id: str, feature_code: str, resource_count: int | None = None
    ) -> FeatureCheckResult:
        feature = await self.get_user_plan_feature(user_id, feature_code)

        observed = resource_count
        if (
            feature is not None
            and feature.limit_type == LimitType.COUNT
            and feature.feature_type == FeatureType.CONSUMABLE
        ):
            observed = await self._usage.get_current_usage(
                user_id, feature_code, feature.effective_period
            )

        result = decide_access(feature, observed)
        if not result.allowed:
            logger.info(
                "feature_access_denied",
                user_id=user_id,
                feature_code=feature_code,
                reason=str(result.reason),
                current=result.current,
                limit=result.limit,
            )
        return result

    async def require_feature_access(
        self, user_id: str, feature_code: str, resource_count: int | None = None
    ) -> FeatureCheckResult:
        """Like ``check_feature_access`` but raises ``BusinessError`` on denial."""
        result = await self.check_feature_access(user_id, feature_code, resource_count)
        if result.allowed:
            return result
        if result.reason == DenialReason.FEATURE_LIMIT_EXCEEDED:
            raise BusinessError(
                ErrorCode.FEATURE_LIMIT_EXCEEDED,
                f"You have reached the limit of {result.limit} for '{feature_code}'. "
                "Upgrade your plan to continue.",
                details={"feature": feature_code, "current": result.current, "limit": result.limit},
            )
        raise BusinessError(
            ErrorCode.FEATURE_NOT_AVAILABLE,
            f"Feature '{feature_code}' is not available on your current plan",
            details={"feature": feature_code},
        )
