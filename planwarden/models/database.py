"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from planwarden.types import LimitPeriod, SubscriptionStatus


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class Plan(SQLModel, table=True):
    __tablename__ = "plans"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    code: str = Field(unique=True, index=True)
    name: str
    description: str | None = None
    price_monthly: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    price_yearly: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    price_currency: str = Field(default="USD")
    is_default: bool = Field(default=False)
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class PlanFeature(SQLModel, table=True):
    __tablename__ = "plan_features"
    __table_args__ = (
        UniqueConstraint("plan_id", "feature_code", name="uq_plan_features_plan_code"),
    )

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    plan_id: str = Field(foreign_key="plans.id", index=True)
    feature_code: str = Field(index=True)
    limit_type: str  # BOOLEAN | COUNT | UNLIMITED
    limit_value: int = Field(default=0)
    feature_type: str = Field(default="RESOURCE")  # RESOURCE | CONSUMABLE
    limit_period: str | None = None  # DAILY | WEEKLY | MONTHLY | YEARLY
    created_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Identity (owned by the auth service, read for notifications)
# ---------------------------------------------------------------------------


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    email: str = Field(index=True)
    name: str = ""
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Subscription state
# ---------------------------------------------------------------------------


class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", unique=True, index=True)
    plan_id: str = Field(foreign_key="plans.id", index=True)
    status: str = Field(default=SubscriptionStatus.ACTIVE)
    current_period_start: datetime = Field(default_factory=_utc_now)
    current_period_end: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    # Deferred change: both set or both null
    scheduled_plan_id: str | None = Field(default=None, foreign_key="plans.id")
    scheduled_change_at: datetime | None = Field(default=None, index=True)
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    # Grace state: both set or both null
    grace_overages: dict[str, int] | None = Field(
        default=None, sa_column=Column(JSON(none_as_null=True))
    )
    grace_period_end: datetime | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class UsageRecord(SQLModel, table=True):
    __tablename__ = "usage_records"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "feature_code", "period_start", name="uq_usage_records_user_feature_period"
        ),
    )

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    feature_code: str = Field(index=True)
    period_type: str = Field(default=LimitPeriod.MONTHLY)
    period_start: datetime
    period_end: datetime = Field(index=True)
    count: int = Field(default=0)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class PlanChangeLog(SQLModel, table=True):
    __tablename__ = "plan_change_logs"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    from_plan_id: str | None = Field(default=None, foreign_key="plans.id")
    to_plan_id: str = Field(foreign_key="plans.id")
    change_type: str = Field(index=True)
    requested_at: datetime = Field(default_factory=_utc_now)
    effective_at: datetime | None = None
    scheduled_for: datetime | None = None
    proration_amount: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    reason: str | None = None
    # {had_overages, overages}; "metadata" is reserved on SQLModel classes
    details: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON(none_as_null=True))
    )
    created_at: datetime = Field(default_factory=_utc_now, index=True)
