"""Plan tier definitions with concrete feature limits."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from planwarden import constants as c
from planwarden.constants import UNLIMITED
from planwarden.types import FeatureType, LimitPeriod, LimitType


@dataclass(frozen=True, slots=True)
class FeatureLimit:
    """One feature row of a plan."""

    feature_code: str
    limit_type: LimitType
    limit_value: int
    feature_type: FeatureType = FeatureType.RESOURCE
    limit_period: LimitPeriod | None = None

    def as_row(self) -> dict[str, Any]:
        return {
            "feature_code": self.feature_code,
            "limit_type": str(self.limit_type),
            "limit_value": self.limit_value,
            "feature_type": str(self.feature_type),
            "limit_period": str(self.limit_period) if self.limit_period else None,
        }


@dataclass(frozen=True, slots=True)
class PlanDefinition:
    code: str
    name: str
    description: str
    price_monthly: Decimal
    price_yearly: Decimal | None
    sort_order: int
    is_default: bool = False
    features: tuple[FeatureLimit, ...] = field(default_factory=tuple)

    def as_row(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "price_monthly": self.price_monthly,
            "price_yearly": self.price_yearly,
            "is_default": self.is_default,
            "sort_order": self.sort_order,
            "is_active": True,
        }


def _resources(limits: dict[str, int]) -> tuple[FeatureLimit, ...]:
    return tuple(
        FeatureLimit(code, LimitType.UNLIMITED, UNLIMITED)
        if value == UNLIMITED
        else FeatureLimit(code, LimitType.COUNT, value)
        for code, value in limits.items()
    )


def _transactions(limit: int) -> FeatureLimit:
    if limit == UNLIMITED:
        return FeatureLimit(
            c.TRANSACTIONS_PER_MONTH, LimitType.UNLIMITED, UNLIMITED, FeatureType.CONSUMABLE
        )
    return FeatureLimit(
        c.TRANSACTIONS_PER_MONTH,
        LimitType.COUNT,
        limit,
        FeatureType.CONSUMABLE,
        LimitPeriod.MONTHLY,
    )


def _toggles(enabled: set[str]) -> tuple[FeatureLimit, ...]:
    codes = (c.ADVANCED_REPORTS, c.EXPORT_DATA, c.MULTI_CURRENCY, c.BUDGET_ALERTS, c.AI_INSIGHTS)
    return tuple(
        FeatureLimit(code, LimitType.BOOLEAN, 1 if code in enabled else 0) for code in codes
    )


PLAN_CATALOG: dict[str, PlanDefinition] = {
    c.PLAN_FREE: PlanDefinition(
        code=c.PLAN_FREE,
        name="Free",
        description="Basic features for personal finance tracking",
        price_monthly=Decimal("0.00"),
        price_yearly=Decimal("0.00"),
        sort_order=0,
        is_default=True,
        features=(
            *_resources(
                {
                    c.ACCOUNTS: 2,
                    c.GOALS: 1,
                    c.DEBTS: 2,
                    c.LOANS: 1,
                    c.CUSTOM_CATEGORIES: 5,
                    c.RECURRING_PAYMENTS: 3,
                }
            ),
            _transactions(100),
            *_toggles(set()),
        ),
    ),
    c.PLAN_PRO: PlanDefinition(
        code=c.PLAN_PRO,
        name="Pro",
        description="Advanced features for serious budgeters",
        price_monthly=Decimal("4.99"),
        price_yearly=Decimal("49.99"),
        sort_order=1,
        features=(
            *_resources(
                {
                    c.ACCOUNTS: 10,
                    c.GOALS: 5,
                    c.DEBTS: 10,
                    c.LOANS: 5,
                    c.CUSTOM_CATEGORIES: 20,
                    c.RECURRING_PAYMENTS: 20,
                }
            ),
            _transactions(1000),
            *_toggles({c.ADVANCED_REPORTS, c.EXPORT_DATA, c.BUDGET_ALERTS}),
        ),
    ),
    c.PLAN_PREMIUM: PlanDefinition(
        code=c.PLAN_PREMIUM,
        name="Premium",
        description="Unlimited access to every feature",
        price_monthly=Decimal("9.99"),
        price_yearly=Decimal("99.99"),
        sort_order=2,
        features=(
            *_resources({code: UNLIMITED for code in c.RESOURCE_FEATURES}),
            _transactions(UNLIMITED),
            *_toggles(
                {
                    c.ADVANCED_REPORTS,
                    c.EXPORT_DATA,
                    c.MULTI_CURRENCY,
                    c.BUDGET_ALERTS,
                    c.AI_INSIGHTS,
                }
            ),
        ),
    ),
}
