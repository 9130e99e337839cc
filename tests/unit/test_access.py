"""Unit tests for feature access decisions."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from planwarden.billing.access import decide_access
from planwarden.constants import (
    ACCOUNTS,
    ADVANCED_REPORTS,
    AI_INSIGHTS,
    GOALS,
    PLAN_PREMIUM,
    PLAN_PRO,
    TRANSACTIONS_PER_MONTH,
)
from planwarden.exceptions import BusinessError
from planwarden.models.domain import PlanFeatureView
from planwarden.types import DenialReason, ErrorCode, FeatureType, LimitPeriod, LimitType

if TYPE_CHECKING:
    from planwarden.web.dependencies import Container


def _feature(limit_type: LimitType, value: int, **kwargs) -> PlanFeatureView:
    return PlanFeatureView(feature_code="x", limit_type=limit_type, limit_value=value, **kwargs)


@pytest.mark.unit
class TestDecideAccess:
    def test_missing_feature_is_not_available(self) -> None:
        result = decide_access(None, 3)
        assert result.allowed is False
        assert result.reason == DenialReason.FEATURE_NOT_AVAILABLE
        assert result.limit == 0

    def test_unlimited_always_allowed(self) -> None:
        result = decide_access(_feature(LimitType.UNLIMITED, -1), 10_000)
        assert result.allowed is True
        assert result.limit == -1
        assert result.current == 10_000

    def test_boolean_enabled(self) -> None:
        result = decide_access(_feature(LimitType.BOOLEAN, 1), None)
        assert result.allowed is True
        assert result.current == 0

    def test_boolean_disabled(self) -> None:
        result = decide_access(_feature(LimitType.BOOLEAN, 0), None)
        assert result.allowed is False
        assert result.reason == DenialReason.FEATURE_NOT_AVAILABLE

    def test_count_below_limit(self) -> None:
        result = decide_access(_feature(LimitType.COUNT, 2), 1)
        assert result.allowed is True
        assert result.reason is None

    def test_count_at_limit_is_denied(self) -> None:
        result = decide_access(_feature(LimitType.COUNT, 2), 2)
        assert result.allowed is False
        assert result.reason == DenialReason.FEATURE_LIMIT_EXCEEDED
        assert (result.current, result.limit) == (2, 2)

    def test_count_without_observation_treated_as_zero(self) -> None:
        result = decide_access(_feature(LimitType.COUNT, 1), None)
        assert result.allowed is True
        assert result.current == 0

    def test_zero_limit_count_is_denied(self) -> None:
        result = decide_access(_feature(LimitType.COUNT, 0), 0)
        assert result.allowed is False

    def test_effective_period_defaults_to_monthly(self) -> None:
        feature = _feature(LimitType.COUNT, 5, feature_type=FeatureType.CONSUMABLE)
        assert feature.effective_period == LimitPeriod.MONTHLY


@pytest.mark.unit
class TestFeatureAccessChecker:
    async def test_user_without_subscription_is_denied(self, container: Container) -> None:
        result = await container.checker.check_feature_access("ghost", ACCOUNTS, 0)
        assert result.allowed is False
        assert result.reason == DenialReason.FEATURE_NOT_AVAILABLE

    async def test_free_plan_resource_limit(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        allowed = await container.checker.check_feature_access("u1", ACCOUNTS, 1)
        denied = await container.checker.check_feature_access("u1", ACCOUNTS, 2)
        assert allowed.allowed is True
        assert denied.allowed is False
        assert denied.limit == 2

    async def test_free_plan_boolean_feature_disabled(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        result = await container.checker.check_feature_access("u1", ADVANCED_REPORTS)
        assert result.allowed is False
        assert result.reason == DenialReason.FEATURE_NOT_AVAILABLE

    async def test_unknown_feature_code_is_not_available(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        result = await container.checker.check_feature_access("u1", "teleportation")
        assert result.allowed is False
        assert result.reason == DenialReason.FEATURE_NOT_AVAILABLE

    async def test_consumable_reads_current_period_usage(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        await container.usage.increment_usage("u1", TRANSACTIONS_PER_MONTH, amount=100)
        # Caller-supplied counts are ignored for consumables
        result = await container.checker.check_feature_access("u1", TRANSACTIONS_PER_MONTH, 0)
        assert result.allowed is False
        assert result.current == 100
        assert result.limit == 100

    async def test_consumable_usage_resets_next_month(self, container: Container, clock) -> None:
        await container.subscriptions.create_for_new_user("u1")
        await container.usage.increment_usage("u1", TRANSACTIONS_PER_MONTH, amount=100)
        clock.advance(days=30)
        result = await container.checker.check_feature_access("u1", TRANSACTIONS_PER_MONTH)
        assert result.allowed is True
        assert result.current == 0

    async def test_pro_plan_enables_reports(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        await container.orchestrator.upgrade_plan("u1", PLAN_PRO, "u1@example.com")
        assert (await container.checker.check_feature_access("u1", ADVANCED_REPORTS)).allowed
        assert not (await container.checker.check_feature_access("u1", AI_INSIGHTS)).allowed

    async def test_premium_is_unlimited(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        await container.orchestrator.upgrade_plan("u1", PLAN_PREMIUM, "u1@example.com")
        result = await container.checker.check_feature_access("u1", GOALS, 500)
        assert result.allowed is True
        assert result.limit == -1


@pytest.mark.unit
class TestRequireFeatureAccess:
    async def test_limit_exceeded_raises_with_details(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        with pytest.raises(BusinessError) as exc_info:
            await container.checker.require_feature_access("u1", GOALS, 1)
        exc = exc_info.value
        assert exc.code == ErrorCode.FEATURE_LIMIT_EXCEEDED
        assert exc.status_code == 403
        assert exc.details == {"feature": GOALS, "current": 1, "limit": 1}

    async def test_not_available_raises(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        with pytest.raises(BusinessError) as exc_info:
            await container.checker.require_feature_access("u1", AI_INSIGHTS)
        assert exc_info.value.code == ErrorCode.FEATURE_NOT_AVAILABLE

    async def test_allowed_returns_result(self, container: Container) -> None:
        await container.subscriptions.create_for_new_user("u1")
        result = await container.checker.require_feature_access("u1", ACCOUNTS, 0)
        assert result.allowed is True
