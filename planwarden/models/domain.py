"""Inter-module data contracts (not persisted directly)."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from planwarden.types import (
    ChangeDirection,
    DenialReason,
    FeatureType,
    LimitPeriod,
    LimitType,
    PlanChangeType,
    SubscriptionStatus,
)


class PlanFeatureView(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    feature_code: str
    limit_type: LimitType
    limit_value: int
    feature_type: FeatureType = FeatureType.RESOURCE
    limit_period: LimitPeriod | None = None  # only meaningful for CONSUMABLE COUNT

    @property
    def effective_period(self) -> LimitPeriod:
        return self.limit_period or LimitPeriod.MONTHLY


class PlanView(BaseModel):
    """Detached, cacheable snapshot of a plan and its feature rows."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    code: str
    name: str
    description: str | None = None
    price_monthly: Decimal
    price_yearly: Decimal | None = None
    price_currency: str = "USD"
    is_default: bool = False
    sort_order: int = 0
    is_active: bool = True
    features: tuple[PlanFeatureView, ...] = ()

    def feature(self, feature_code: str) -> PlanFeatureView | None:
        for feature in self.features:
            if feature.feature_code == feature_code:
                return feature
        return None


class SubscriptionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    status: SubscriptionStatus
    plan: PlanView
    current_period_start: datetime
    current_period_end: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    scheduled_plan: PlanView | None = None
    scheduled_change_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    grace_overages: dict[str, int] | None = None
    grace_period_end: datetime | None = None


class Contact(BaseModel):
    user_id: str
    email: str
    name: str | None = None


class FeatureCheckResult(BaseModel):
    allowed: bool
    current: int
    limit: int
    reason: DenialReason | None = None


class ResourceOverage(BaseModel):
    feature_code: str
    current: int
    new_limit: int
    overage: int
    has_grace_period: bool


class PlanChangePreview(BaseModel):
    current_plan: PlanView
    target_plan: PlanView
    change_type: ChangeDirection
    immediate: bool
    effective_at: datetime | None = None  # downgrades only
    proration_amount: Decimal | None = None  # upgrades only
    overages: list[ResourceOverage] = []
    has_overages: bool = False
    grace_period_end: datetime | None = None


class UpgradeResult(BaseModel):
    message: str
    subscription: SubscriptionView
    proration_amount: Decimal


class DowngradeResult(BaseModel):
    message: str
    subscription: SubscriptionView
    scheduled_for: datetime
    target_plan_code: str
    overages: list[ResourceOverage] = []
    grace_period_end: datetime | None = None


class CancelResult(BaseModel):
    message: str
    cancelled_at: datetime
    effective_at: datetime


class ReactivateResult(BaseModel):
    message: str
    subscription: SubscriptionView


class CancelScheduledResult(BaseModel):
    message: str
    subscription: SubscriptionView


class PlanChangeLogEntry(BaseModel):
    id: str
    change_type: PlanChangeType
    from_plan_code: str | None = None
    from_plan_name: str | None = None
    to_plan_code: str
    to_plan_name: str
    requested_at: datetime
    effective_at: datetime | None = None
    scheduled_for: datetime | None = None
    proration_amount: Decimal | None = None
    reason: str | None = None
    metadata: dict[str, object] | None = None


class FeatureUsage(BaseModel):
    feature_code: str
    current: int
    limit: int
    limit_type: LimitType
    feature_type: FeatureType
    period_type: LimitPeriod | None = None
    period_end: datetime | None = None
    usage_percentage: int = 0
    limit_reached: bool = False


class UsageReport(BaseModel):
    plan_code: str
    plan_name: str
    features: list[FeatureUsage] = []
