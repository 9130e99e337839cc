"""Unit tests for the scheduled change and grace period jobs."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest

from planwarden.constants import CUSTOM_CATEGORIES, GOALS, PLAN_FREE, PLAN_PREMIUM, PLAN_PRO
from planwarden.types import NotificationTemplate, PlanChangeType

if TYPE_CHECKING:
    from conftest import RecordingNotificationSender
    from planwarden.billing.resources import StaticResourceCounter
    from planwarden.web.dependencies import Container

EMAIL = "ana@example.com"


async def _subscribed_user(container: Container, plan_code: str, user_id: str = "u1") -> None:
    await container.users.create(f"{user_id}@example.com", "Ana", user_id=user_id)
    await container.subscriptions.create_for_new_user(user_id)
    if plan_code != PLAN_FREE:
        await container.orchestrator.upgrade_plan(user_id, plan_code, EMAIL)


def _templates(notifier: RecordingNotificationSender) -> list[NotificationTemplate]:
    return [n.template for n in notifier.sent]


@pytest.mark.unit
class TestApplyDueScheduledChanges:
    async def test_nothing_due(self, container: Container) -> None:
        await _subscribed_user(container, PLAN_PRO)
        await container.orchestrator.downgrade_plan("u1", PLAN_FREE, EMAIL)
        report = await container.processor.apply_due_scheduled_changes()
        assert report.applied == 0

    async def test_applies_downgrade_at_period_end(
        self, container: Container, notifier: RecordingNotificationSender, clock
    ) -> None:
        await _subscribed_user(container, PLAN_PRO)
        await container.orchestrator.downgrade_plan("u1", PLAN_FREE, EMAIL)
        notifier.sent.clear()

        clock.advance(days=30)
        report = await container.processor.apply_due_scheduled_changes()

        assert report.applied == 1
        subscription = await container.subscriptions.get_subscription("u1")
        assert subscription.plan.code == PLAN_FREE
        assert subscription.scheduled_plan is None
        assert subscription.current_period_start == clock.now
        assert subscription.current_period_end is None

        history = await container.orchestrator.get_plan_change_history("u1")
        assert history[0].change_type == PlanChangeType.CANCELLATION_APPLIED
        assert history[0].metadata == {"had_overages": False, "overages": {}}
        assert _templates(notifier) == [NotificationTemplate.SUBSCRIPTION_CANCELLED]
        assert notifier.sent[0].recipient == "u1@example.com"

    async def test_downgrade_to_paid_plan_is_downgrade_applied(
        self, container: Container, notifier: RecordingNotificationSender, clock
    ) -> None:
        await _subscribed_user(container, PLAN_PREMIUM)
        await container.orchestrator.downgrade_plan("u1", PLAN_PRO, EMAIL)
        notifier.sent.clear()

        clock.advance(days=30)
        await container.processor.apply_due_scheduled_changes()

        subscription = await container.subscriptions.get_subscription("u1")
        assert subscription.plan.code == PLAN_PRO
        assert subscription.current_period_end == clock.now + timedelta(days=30)
        history = await container.orchestrator.get_plan_change_history("u1")
        assert history[0].change_type == PlanChangeType.DOWNGRADE_APPLIED
        assert _templates(notifier) == [NotificationTemplate.PLAN_DOWNGRADE_SCHEDULED]

    async def test_grace_period_recomputed_on_apply(
        self,
        container: Container,
        resource_counts: dict[str, StaticResourceCounter],
        clock,
    ) -> None:
        await _subscribed_user(container, PLAN_PRO)
        resource_counts[GOALS].counts["u1"] = 2
        await container.orchestrator.downgrade_plan("u1", PLAN_FREE, EMAIL)

        # The user creates more goals before the change lands
        resource_counts[GOALS].counts["u1"] = 4
        resource_counts[CUSTOM_CATEGORIES].counts["u1"] = 6
        clock.advance(days=30)
        await container.processor.apply_due_scheduled_changes()

        subscription = await container.subscriptions.get_subscription("u1")
        assert subscription.grace_overages == {GOALS: 3, CUSTOM_CATEGORIES: 1}
        assert subscription.grace_period_end == clock.now + timedelta(days=7)

    async def test_second_run_is_a_no_op(self, container: Container, clock) -> None:
        await _subscribed_user(container, PLAN_PRO)
        await container.orchestrator.cancel_subscription("u1", None, EMAIL)
        clock.advance(days=31)

        first = await container.processor.apply_due_scheduled_changes()
        second = await container.processor.apply_due_scheduled_changes()

        assert first.applied == 1
        assert second.applied == 0
        history = await container.orchestrator.get_plan_change_history("u1")
        applied = [h for h in history if h.change_type == PlanChangeType.CANCELLATION_APPLIED]
        assert len(applied) == 1

    async def test_one_failure_does_not_stop_the_batch(self, container: Container, clock) -> None:
        await _subscribed_user(container, PLAN_PRO, "u1")
        await _subscribed_user(container, PLAN_PRO, "u2")
        await container.orchestrator.downgrade_plan("u1", PLAN_FREE, EMAIL)
        await container.orchestrator.downgrade_plan("u2", PLAN_FREE, EMAIL)
        clock.advance(days=30)

        repo = container.processor._subscriptions
        original = repo.apply_scheduled_change

        async def flaky(user_id: str, **kwargs):
            if user_id == "u1":
                raise RuntimeError("connection reset")
            return await original(user_id, **kwargs)

        with patch.object(repo, "apply_scheduled_change", AsyncMock(side_effect=flaky)):
            report = await container.processor.apply_due_scheduled_changes()

        assert report.failed == 1
        assert report.applied == 1
        assert (await container.subscriptions.get_subscription("u2")).plan.code == PLAN_FREE
        assert (await container.subscriptions.get_subscription("u1")).plan.code == PLAN_PRO

    async def test_missing_contact_still_applies(
        self, container: Container, notifier: RecordingNotificationSender, clock
    ) -> None:
        await container.subscriptions.create_for_new_user("u9")
        await container.orchestrator.upgrade_plan("u9", PLAN_PRO, EMAIL)
        await container.orchestrator.downgrade_plan("u9", PLAN_FREE, EMAIL)
        notifier.sent.clear()
        clock.advance(days=30)

        report = await container.processor.apply_due_scheduled_changes()

        assert report.applied == 1
        assert notifier.sent == []


@pytest.mark.unit
class TestHandleGracePeriods:
    async def _downgraded_with_overage(
        self, container: Container, resource_counts: dict[str, StaticResourceCounter], clock
    ) -> None:
        await _subscribed_user(container, PLAN_PRO)
        resource_counts[GOALS].counts["u1"] = 3
        await container.orchestrator.downgrade_plan("u1", PLAN_FREE, EMAIL)
        clock.advance(days=30)
        await container.processor.apply_due_scheduled_changes()

    async def test_no_warning_outside_window(
        self, container: Container, resource_counts, notifier: RecordingNotificationSender, clock
    ) -> None:
        await self._downgraded_with_overage(container, resource_counts, clock)
        notifier.sent.clear()

        report = await container.processor.handle_grace_periods()

        assert report.warned == 0
        assert report.expired == 0
        assert notifier.sent == []

    async def test_warning_inside_window(
        self, container: Container, resource_counts, notifier: RecordingNotificationSender, clock
    ) -> None:
        await self._downgraded_with_overage(container, resource_counts, clock)
        notifier.sent.clear()
        clock.advance(days=5, hours=12)

        report = await container.processor.handle_grace_periods()

        assert report.warned == 1
        sent = notifier.sent[0]
        assert sent.template == NotificationTemplate.GRACE_PERIOD_WARNING
        assert sent.variables["daysRemaining"] == 2
        assert sent.variables["overages"] == [{"feature": "Goals", "current": 3, "limit": 1}]

    async def test_expiry_clears_grace_and_notifies_once(
        self, container: Container, resource_counts, notifier: RecordingNotificationSender, clock
    ) -> None:
        await self._downgraded_with_overage(container, resource_counts, clock)
        notifier.sent.clear()
        clock.advance(days=8)

        first = await container.processor.handle_grace_periods()
        second = await container.processor.handle_grace_periods()

        assert first.expired == 1
        assert second.expired == 0
        assert _templates(notifier) == [NotificationTemplate.GRACE_PERIOD_EXPIRED]
        subscription = await container.subscriptions.get_subscription("u1")
        assert subscription.grace_overages is None
        assert subscription.grace_period_end is None

    async def test_reactivation_drops_grace_from_abandoned_downgrade(
        self, container: Container, resource_counts, notifier: RecordingNotificationSender, clock
    ) -> None:
        await _subscribed_user(container, PLAN_PRO)
        resource_counts[GOALS].counts["u1"] = 3
        await container.orchestrator.downgrade_plan("u1", PLAN_FREE, EMAIL)
        await container.orchestrator.cancel_subscription("u1", None, EMAIL)
        result = await container.orchestrator.reactivate_subscription("u1")
        notifier.sent.clear()

        assert result.subscription.grace_overages is None
        assert result.subscription.grace_period_end is None

        for days in (35, 3):
            clock.advance(days=days)
            report = await container.processor.handle_grace_periods()
            assert report.warned == 0
            assert report.expired == 0
        assert notifier.sent == []
