"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from planwarden.billing.resources import ResourceCounterRegistry, StaticResourceCounter
from planwarden.billing.seed import seed_plans
from planwarden.config.settings import Settings
from planwarden.constants import RESOURCE_FEATURES
from planwarden.notifications.sender import LogNotificationSender
from planwarden.storage.repositories.plans import DatabasePlanRepository
from planwarden.types import NotificationTemplate
from planwarden.web.app import create_app
from planwarden.web.dependencies import build_container

NOW = datetime(2026, 3, 10, 12, 0, 0)


class FakeClock:
    """Settable clock injected wherever services read the current time."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@dataclass(frozen=True, slots=True)
class SentNotification:
    template: NotificationTemplate
    recipient: str
    variables: dict[str, Any]


class RecordingNotificationSender(LogNotificationSender):
    """Log sender that also keeps every notification for assertions."""

    def __init__(self) -> None:
        self.sent: list[SentNotification] = []

    async def send_template(
        self, template: NotificationTemplate, recipient: str, variables: dict[str, Any]
    ) -> None:
        self.sent.append(SentNotification(template, recipient, variables))
        await super().send_template(template, recipient, variables)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def seeded_engine(async_engine):
    """SQLite engine with the free/pro/premium catalog seeded."""
    await seed_plans(DatabasePlanRepository(async_engine))
    return async_engine


@pytest.fixture()
def resource_counts() -> dict[str, StaticResourceCounter]:
    """One static counter per resource feature; tests set ``counts[user_id]``."""
    return {code: StaticResourceCounter() for code in RESOURCE_FEATURES}


@pytest.fixture()
def resources(resource_counts) -> ResourceCounterRegistry:
    return ResourceCounterRegistry(dict(resource_counts))


@pytest.fixture()
def notifier() -> RecordingNotificationSender:
    return RecordingNotificationSender()


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite:///:memory:", mail_provider="log")


@pytest.fixture()
def container(seeded_engine, settings, notifier, resources, clock):
    return build_container(
        seeded_engine, settings, notifier=notifier, resources=resources, clock=clock
    )


@pytest.fixture()
def app(container):
    """Create a fresh app instance wired to the seeded SQLite container."""
    return create_app(container=container)


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
