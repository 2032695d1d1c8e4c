from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from gql_cache.domain.entities import (
    CacheEntry,
    CacheKeyDescriptor,
    CacheStats,
    InvalidationPattern,
)
from gql_cache.domain.exceptions import InvalidConfigurationError
from gql_cache.domain.services import derive_key, role_label, user_label

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL_MS = 60_000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def _require_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return value


class PermissionAwareCache:
    """Bounded, TTL-expiring response cache keyed by query shape and caller permissions.

    Entries are held in insertion order; when full, the oldest-inserted entry
    is evicted (FIFO, get() never reorders). Expired entries are dropped lazily
    by get() and reclaimed by set() before any live entry is evicted.
    All store mutations happen under a single lock.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._max_size = _require_positive_int("max_size", max_size)
        self._default_ttl_ms = _require_positive_int("default_ttl_ms", default_ttl_ms)
        self._clock = clock or _monotonic_ms  # Milliseconds
        self._store: dict[str, CacheEntry] = {}  # Insertion-ordered
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl_ms(self) -> int:
        return self._default_ttl_ms

    def __len__(self) -> int:
        return len(self._store)

    @staticmethod
    def derive_key(descriptor: CacheKeyDescriptor) -> str:
        return derive_key(descriptor)

    def get(self, descriptor: CacheKeyDescriptor) -> Any | None:
        """Return the cached payload, or None if missing or expired."""
        key = derive_key(descriptor)
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
        logger.debug("Cache HIT: %s for role=%s", descriptor.query, entry.role_label)
        return entry.data

    def set(self, descriptor: CacheKeyDescriptor, data: Any, ttl_ms: int | None = None) -> None:
        """Store data under the descriptor's key. Uses default_ttl_ms when ttl_ms is None."""
        if ttl_ms is not None and (isinstance(ttl_ms, bool) or ttl_ms <= 0):
            logger.warning("Ignoring non-positive ttl_ms=%r for %s", ttl_ms, descriptor.query)
            ttl_ms = None
        effective_ttl = ttl_ms if ttl_ms is not None else self._default_ttl_ms
        key = derive_key(descriptor)
        entry = CacheEntry(
            data=data,
            inserted_at=0.0,
            ttl_ms=effective_ttl,
            query=descriptor.query,
            user_label=user_label(descriptor.user_id),
            role_label=role_label(descriptor.role),
        )
        with self._lock:
            now = self._clock()
            entry.inserted_at = now
            # Overwrites move to the newest insertion position
            if self._store.pop(key, None) is None and len(self._store) >= self._max_size:
                self._evict_expired(now)
                if len(self._store) >= self._max_size:
                    self._evict_oldest()
            self._store[key] = entry
        logger.debug("Cache SET: %s for role=%s", descriptor.query, entry.role_label)

    def invalidate(
        self,
        pattern: InvalidationPattern | None = None,
        *,
        query: str | None = None,
        user_id: str | None = None,
        role: str | None = None,
    ) -> int:
        """Delete every entry matching any field of the pattern; return how many went.

        Accepts an InvalidationPattern or the same fields as keyword arguments.
        A pattern with no fields set deletes nothing; use clear() for that.
        """
        if pattern is None:
            pattern = InvalidationPattern(query=query, user_id=user_id, role=role)
        if pattern.is_empty:
            return 0
        with self._lock:
            doomed = [k for k, entry in self._store.items() if pattern.matches(entry)]
            for k in doomed:
                del self._store[k]
        if doomed:
            logger.info("Cache INVALIDATED %d entries matching %s", len(doomed), pattern.to_dict())
        return len(doomed)

    def clear(self) -> None:
        """Remove all cached entries."""
        with self._lock:
            self._store.clear()
        logger.info("Cache CLEARED all entries")

    def stats(self) -> CacheStats:
        with self._lock:
            size = len(self._store)
            return CacheStats(
                size=size,
                max_size=self._max_size,
                utilization_percent=round(size / self._max_size * 100, 2),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def _evict_expired(self, now: float) -> None:
        """Remove all expired entries from the store. Caller holds the lock."""
        expired_keys = [k for k, entry in self._store.items() if entry.is_expired(now)]
        for k in expired_keys:
            del self._store[k]

    def _evict_oldest(self) -> None:
        """Remove the oldest-inserted entry. Caller holds the lock."""
        oldest = next(iter(self._store))
        del self._store[oldest]
        self._evictions += 1
        logger.debug("Cache EVICTED oldest entry (max_size=%d)", self._max_size)
