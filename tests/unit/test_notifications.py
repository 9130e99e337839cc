"""Unit tests for email formatting, rendering and delivery."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from planwarden.config.settings import Settings
from planwarden.exceptions import ConfigError, NotificationError
from planwarden.models.domain import PlanFeatureView, PlanView
from planwarden.notifications import formatting
from planwarden.notifications.sender import (
    LogNotificationSender,
    ResendNotificationSender,
    build_sender,
    deliver,
)
from planwarden.notifications.templates import render_email
from planwarden.types import LimitType, NotificationTemplate

FREE = PlanView(
    id="p-free",
    code="free",
    name="Free",
    price_monthly=Decimal("0.00"),
    is_default=True,
    features=(
        PlanFeatureView(feature_code="goals", limit_type=LimitType.COUNT, limit_value=1),
        PlanFeatureView(
            feature_code="custom_categories", limit_type=LimitType.COUNT, limit_value=5
        ),
    ),
)
PRO = PlanView(id="p-pro", code="pro", name="Pro", price_monthly=Decimal("4.99"), sort_order=1)


@pytest.mark.unit
class TestFormatting:
    def test_format_price(self) -> None:
        assert formatting.format_price(Decimal("0")) == "Free"
        assert formatting.format_price(Decimal("4.99")) == "$4.99/month"

    def test_format_date(self) -> None:
        assert formatting.format_date(datetime(2026, 3, 9, 8, 0)) == "March 9, 2026"
        assert formatting.format_date(None) == ""

    def test_format_feature_name(self) -> None:
        assert formatting.format_feature_name("custom_categories") == "Custom Categories"

    def test_display_name_falls_back_to_email(self) -> None:
        variables = formatting.upgraded_variables(
            name=None,
            email="ana.lee@example.com",
            previous=FREE,
            new=PRO,
            effective_at=datetime(2026, 3, 10),
        )
        assert variables["userName"] == "ana.lee"
        assert variables["previousPlanName"] == "Free"

    def test_grace_rows_rebuild_current_count(self) -> None:
        rows = formatting.grace_overage_rows(FREE, {"goals": 2, "custom_categories": 1})
        assert rows == [
            {"feature": "Custom Categories", "current": 6, "limit": 5},
            {"feature": "Goals", "current": 3, "limit": 1},
        ]


@pytest.mark.unit
class TestRenderEmail:
    def test_upgrade_email(self) -> None:
        variables = formatting.upgraded_variables(
            name="Ana", email=None, previous=FREE, new=PRO, effective_at=datetime(2026, 3, 10)
        )
        subject, html = render_email(NotificationTemplate.PLAN_UPGRADED, variables)
        assert subject == "Your plan has been upgraded to Pro"
        assert "Hi Ana" in html
        assert "$4.99/month" in html

    def test_grace_warning_lists_overages(self) -> None:
        variables = formatting.grace_warning_variables(
            name="Ana",
            email=None,
            grace_period_end=datetime(2026, 4, 16),
            days_remaining=2,
            overages=formatting.grace_overage_rows(FREE, {"goals": 2}),
        )
        subject, html = render_email(NotificationTemplate.GRACE_PERIOD_WARNING, variables)
        assert subject.startswith("2 day(s)")
        assert "Goals" in html
        assert "April 16, 2026" in html

    def test_names_are_escaped(self) -> None:
        variables = formatting.cancelled_variables(
            name="<script>", email=None, current=PRO, effective_at=datetime(2026, 4, 9)
        )
        _, html = render_email(NotificationTemplate.SUBSCRIPTION_CANCELLED, variables)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


@pytest.mark.unit
class TestDeliver:
    async def test_log_sender_delivers(self) -> None:
        sender = LogNotificationSender()
        assert await deliver(sender, NotificationTemplate.PLAN_UPGRADED, "a@b.c", {"x": 1})

    async def test_log_sender_keeps_no_history(self) -> None:
        sender = LogNotificationSender()
        for i in range(500):
            await deliver(sender, NotificationTemplate.PLAN_UPGRADED, f"u{i}@b.c", {"x": i})
        assert not hasattr(sender, "sent")
        assert vars(sender) == {}

    async def test_no_recipient_is_skipped(self) -> None:
        sender = AsyncMock()
        assert await deliver(sender, NotificationTemplate.PLAN_UPGRADED, None, {}) is False
        sender.send_template.assert_not_called()

    async def test_failures_are_swallowed(self) -> None:
        sender = AsyncMock()
        sender.send_template.side_effect = NotificationError("boom")
        assert await deliver(sender, NotificationTemplate.PLAN_UPGRADED, "a@b.c", {}) is False


@pytest.mark.unit
class TestResendNotificationSender:
    def _variables(self) -> dict[str, object]:
        return formatting.upgraded_variables(
            name="Ana", email=None, previous=FREE, new=PRO, effective_at=datetime(2026, 3, 10)
        )

    async def test_sends_rendered_email(self) -> None:
        sender = ResendNotificationSender("re_test", "Billing <billing@example.com>")
        with patch("resend.Emails.send", return_value={"id": "msg_1"}) as send:
            await sender.send_template(
                NotificationTemplate.PLAN_UPGRADED, "ana@example.com", self._variables()
            )
        params = send.call_args.args[0]
        assert params["to"] == ["ana@example.com"]
        assert params["from"] == "Billing <billing@example.com>"
        assert params["subject"] == "Your plan has been upgraded to Pro"

    async def test_provider_error_is_wrapped(self) -> None:
        sender = ResendNotificationSender("re_test", "billing@example.com")
        with (
            patch("resend.Emails.send", side_effect=RuntimeError("rate limited")),
            pytest.raises(NotificationError, match="rate limited"),
        ):
            await sender.send_template(
                NotificationTemplate.PLAN_UPGRADED, "ana@example.com", self._variables()
            )


@pytest.mark.unit
class TestBuildSender:
    def test_log_provider(self) -> None:
        assert isinstance(build_sender(Settings(mail_provider="log")), LogNotificationSender)

    def test_resend_provider(self) -> None:
        settings = Settings(mail_provider="resend", resend_api_key="re_test")
        assert isinstance(build_sender(settings), ResendNotificationSender)

    def test_resend_without_key(self) -> None:
        with pytest.raises(ConfigError):
            build_sender(Settings(mail_provider="resend", resend_api_key=None))
