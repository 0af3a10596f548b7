"""Key-value cache used for workflow state persistence."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

from cadence.core import metrics
from cadence.core.datetime_utils import utc_now
from cadence.core.logging import get_logger

logger = get_logger(__name__)


class BaseCache(ABC):
    """Abstract cache interface: get, set with TTL, delete."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value that expires after ttl_seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        pass

    async def exists(self, key: str) -> bool:
        """Check whether a live entry exists for key."""
        return await self.get(key) is not None


class InMemoryCache(BaseCache):
    """
    Process-local cache with per-entry expiry.

    Expired entries are dropped lazily on read and in bulk by cleanup().
    """

    def __init__(self, default_ttl: int = 3600) -> None:
        """
        Initialize cache.

        Args:
            default_ttl: Expiry in seconds when set() is called without one
        """
        self._store: dict[str, tuple[Any, datetime]] = {}
        self._default_ttl = default_ttl

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            metrics.cache_requests_total.labels(result="miss").inc()
            return None

        value, expires_at = entry
        if utc_now() >= expires_at:
            del self._store[key]
            metrics.cache_requests_total.labels(result="miss").inc()
            return None

        metrics.cache_requests_total.labels(result="hit").inc()
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds or self._default_ttl
        self._store[key] = (value, utc_now() + timedelta(seconds=ttl))

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def cleanup(self) -> int:
        """Drop all expired entries and return how many were removed."""
        now = utc_now()
        expired = [key for key, (_, expires_at) in self._store.items() if now >= expires_at]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("cache_expired_keys_removed", count=len(expired))
        return len(expired)

    def size(self) -> int:
        """Return current number of entries, including not-yet-collected expired ones."""
        return len(self._store)

    def clear(self) -> None:
        """Remove all entries."""
        self._store.clear()
