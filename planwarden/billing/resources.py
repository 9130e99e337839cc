"""Live resource counts supplied by the modules that own each resource."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

CountFn = Callable[[str], Awaitable[int]]


class ResourceCounter(Protocol):
    """Counts a user's existing records of one resource kind."""

    async def count(self, user_id: str) -> int: ...


class _CallableCounter:
    def __init__(self, fn: CountFn) -> None:
        self._fn = fn

    async def count(self, user_id: str) -> int:
        return await self._fn(user_id)


class ResourceCounterRegistry:
    """Maps feature codes to the counter of the module owning that resource.

    Features without a registered counter count as zero, which under-reports
    overages; every such lookup is logged so the gap stays visible.
    """

    def __init__(self, counters: dict[str, ResourceCounter] | None = None) -> None:
        self._counters: dict[str, ResourceCounter] = dict(counters or {})

    def register(self, feature_code: str, counter: ResourceCounter | CountFn) -> None:
        if not hasattr(counter, "count"):
            counter = _CallableCounter(counter)  # type: ignore[arg-type]
        self._counters[feature_code] = counter  # type: ignore[assignment]
        logger.debug("resource_counter_registered", feature_code=feature_code)

    def has(self, feature_code: str) -> bool:
        return feature_code in self._counters

    async def count(self, user_id: str, feature_code: str) -> int:
        counter = self._counters.get(feature_code)
        if counter is None:
            logger.warning("resource_counter_missing", feature_code=feature_code)
            return 0
        return int(await counter.count(user_id))


class StaticResourceCounter:
    """Fixed per-user counts; used for local development and tests."""

    def __init__(self, counts: dict[str, int] | None = None) -> None:
        self.counts: dict[str, int] = dict(counts or {})

    async def count(self, user_id: str) -> int:
        return self.counts.get(user_id, 0)
