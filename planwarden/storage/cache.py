"""In-process read-through cache backed by cachetools.TTLCache."""

from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from cachetools import TTLCache

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Sentinel so cached None values (e.g. unknown plan codes) are distinguishable from misses
_MISSING = object()


class ReadThroughCache:
    """TTL cache with explicit invalidation.

    Entries expire after ``ttl`` seconds; writers to the underlying store must
    call ``invalidate`` so readers never see stale data for longer than that.
    """

    def __init__(self, maxsize: int = 128, ttl: float = 600) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for ``key`` or await ``compute`` and store it."""
        cached = self.get(key)
        if cached is not _MISSING:
            return cached  # type: ignore[no-any-return]
        value = await compute()
        self.set(key, value)
        logger.debug("cache_filled", key=key)
        return value

    def invalidate(self, prefix: str = "") -> None:
        """Drop every entry, or only keys starting with ``prefix``."""
        with self._lock:
            if not prefix:
                self._cache.clear()
            else:
                for key in [k for k in self._cache if k.startswith(prefix)]:
                    self._cache.pop(key, None)
        logger.debug("cache_invalidated", prefix=prefix or "*")

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
