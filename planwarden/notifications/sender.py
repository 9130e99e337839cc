"""Notification senders for plan lifecycle emails."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Protocol

import resend
import structlog

from planwarden.exceptions import ConfigError, NotificationError
from planwarden.notifications.templates import render_email

if TYPE_CHECKING:
    from planwarden.config.settings import Settings
    from planwarden.types import NotificationTemplate

logger = structlog.get_logger(__name__)


class NotificationSender(Protocol):
    async def send_template(
        self, template: NotificationTemplate, recipient: str, variables: dict[str, Any]
    ) -> None: ...


class LogNotificationSender:
    """Writes notifications to the structured log instead of delivering them."""

    async def send_template(
        self, template: NotificationTemplate, recipient: str, variables: dict[str, Any]
    ) -> None:
        logger.info(
            "notification_logged",
            template=str(template),
            recipient=recipient,
            variables=sorted(variables),
        )


class ResendNotificationSender:
    """Renders the email locally and delivers it through the Resend API."""

    def __init__(self, api_key: str, mail_from: str) -> None:
        self._api_key = api_key
        self._mail_from = mail_from

    async def send_template(
        self, template: NotificationTemplate, recipient: str, variables: dict[str, Any]
    ) -> None:
        subject, html = render_email(template, variables)
        params = {"from": self._mail_from, "to": [recipient], "subject": subject, "html": html}
        try:
            result = await asyncio.to_thread(self._send, params)
        except Exception as exc:
            msg = f"Resend delivery failed for {template}: {exc}"
            raise NotificationError(msg) from exc
        logger.info(
            "notification_sent",
            template=str(template),
            recipient=recipient,
            message_id=result.get("id") if isinstance(result, dict) else None,
        )

    def _send(self, params: dict[str, Any]) -> Any:
        resend.api_key = self._api_key
        return resend.Emails.send(params)  # type: ignore[arg-type]


async def deliver(
    sender: NotificationSender,
    template: NotificationTemplate,
    recipient: str | None,
    variables: dict[str, Any],
) -> bool:
    """Send without letting delivery failures reach the caller.

    Plan changes are committed before notifying, so a failed email is logged
    and reported as ``False`` rather than raised.
    """
    if not recipient:
        logger.warning("notification_skipped_no_recipient", template=str(template))
        return False
    try:
        await sender.send_template(template, recipient, variables)
    except Exception:
        logger.exception("notification_failed", template=str(template), recipient=recipient)
        return False
    return True


def build_sender(settings: Settings) -> NotificationSender:
    """Create the sender selected by ``MAIL_PROVIDER``."""
    if settings.mail_provider == "log":
        return LogNotificationSender()
    if settings.mail_provider == "resend":
        if not settings.resend_api_key:
            msg = "MAIL_PROVIDER=resend requires RESEND_API_KEY"
            raise ConfigError(msg)
        return ResendNotificationSender(settings.resend_api_key, settings.mail_from)
    msg = f"Unknown mail provider: {settings.mail_provider}"
    raise ConfigError(msg)
