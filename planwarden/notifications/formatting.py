"""Template variables for plan lifecycle emails."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from planwarden.models.domain import PlanView, ResourceOverage


def format_price(price: Decimal | None, period: str = "month") -> str:
    if not price:
        return "Free"
    return f"${Decimal(price):.2f}/{period}"


def format_date(moment: datetime | None) -> str:
    """``October 18, 2026``; empty when there is no date."""
    if moment is None:
        return ""
    return f"{moment:%B} {moment.day}, {moment.year}"


def format_feature_name(feature_code: str) -> str:
    return " ".join(word.capitalize() for word in feature_code.split("_"))


def _display_name(name: str | None, email: str | None) -> str:
    if name:
        return name
    return email.split("@", 1)[0] if email else "there"


def upgraded_variables(
    *,
    name: str | None,
    email: str | None,
    previous: PlanView,
    new: PlanView,
    effective_at: datetime,
) -> dict[str, Any]:
    return {
        "userName": _display_name(name, email),
        "previousPlanName": previous.name,
        "newPlanName": new.name,
        "newPlanPrice": format_price(new.price_monthly),
        "effectiveDate": format_date(effective_at),
    }


def downgrade_variables(
    *,
    name: str | None,
    email: str | None,
    current: PlanView,
    target: PlanView,
    effective_at: datetime,
    overages: list[ResourceOverage],
    grace_period_end: datetime | None,
) -> dict[str, Any]:
    return {
        "userName": _display_name(name, email),
        "currentPlanName": current.name,
        "newPlanName": target.name,
        "effectiveDate": format_date(effective_at),
        "overages": [
            {
                "feature": format_feature_name(o.feature_code),
                "current": o.current,
                "newLimit": o.new_limit,
            }
            for o in overages
        ],
        "hasOverages": bool(overages),
        "gracePeriodEnd": format_date(grace_period_end),
    }


def cancelled_variables(
    *, name: str | None, email: str | None, current: PlanView, effective_at: datetime
) -> dict[str, Any]:
    return {
        "userName": _display_name(name, email),
        "currentPlanName": current.name,
        "effectiveDate": format_date(effective_at),
    }


def grace_overage_rows(plan: PlanView, grace_overages: dict[str, int]) -> list[dict[str, Any]]:
    """Rebuild ``{feature, current, limit}`` rows from the stored overage counts."""
    rows = []
    for code, overage in sorted(grace_overages.items()):
        feature = plan.feature(code)
        limit = feature.limit_value if feature else 0
        rows.append(
            {"feature": format_feature_name(code), "current": limit + overage, "limit": limit}
        )
    return rows


def grace_warning_variables(
    *,
    name: str | None,
    email: str | None,
    grace_period_end: datetime,
    days_remaining: int,
    overages: list[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "userName": _display_name(name, email),
        "gracePeriodEnd": format_date(grace_period_end),
        "daysRemaining": days_remaining,
        "overages": overages,
    }


def grace_expired_variables(
    *, name: str | None, email: str | None, overages: list[dict[str, Any]]
) -> dict[str, Any]:
    return {"userName": _display_name(name, email), "overages": overages}
