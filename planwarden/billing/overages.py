"""Detect resources a user holds beyond a target plan's limits."""

from __future__ import annotations

from typing import TYPE_CHECKING

from planwarden.constants import GRACE_PERIOD_FEATURES
from planwarden.models.domain import ResourceOverage
from planwarden.types import FeatureType, LimitType

if TYPE_CHECKING:
    from planwarden.billing.resources import ResourceCounterRegistry
    from planwarden.models.domain import PlanView


def has_grace_period(feature_code: str) -> bool:
    return feature_code in GRACE_PERIOD_FEATURES


async def detect_overages(
    resources: ResourceCounterRegistry, user_id: str, plan: PlanView
) -> list[ResourceOverage]:
    """Compare live RESOURCE counts against ``plan``'s COUNT limits."""
    overages: list[ResourceOverage] = []
    for feature in plan.features:
        if feature.limit_type != LimitType.COUNT or feature.feature_type != FeatureType.RESOURCE:
            continue
        current = await resources.count(user_id, feature.feature_code)
        if current > feature.limit_value:
            overages.append(
                ResourceOverage(
                    feature_code=feature.feature_code,
                    current=current,
                    new_limit=feature.limit_value,
                    overage=current - feature.limit_value,
                    has_grace_period=has_grace_period(feature.feature_code),
                )
            )
    return overages


def overage_map(overages: list[ResourceOverage]) -> dict[str, int]:
    """Persisted form of the overages: feature code to excess count."""
    return {o.feature_code: o.overage for o in overages}
