"""
In-process cache tier (L1).

Bounded, per-entry TTL-since-write cache backed by ``cachetools``.
Least-recently-used entries are dropped once the tier is full.  Hit,
miss and eviction counters belong to the tier instance and are reset
only by :meth:`LocalCacheTier.clear`.
"""

import logging
import threading
from typing import Any, Generic, Hashable, Optional, TypeVar

from cachetools import TTLCache

from answercache.exceptions import ConfigurationError
from answercache.models import TierStats, hit_rate_percent

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_MAX_SIZE = 500
DEFAULT_TTL_SECONDS = 1800


class _CountingTTLCache(TTLCache):
    """TTLCache that counts entries removed by capacity or expiry."""

    def __init__(self, maxsize: int, ttl: float) -> None:
        super().__init__(maxsize=maxsize, ttl=ttl)
        self.evictions = 0

    def popitem(self):
        key, value = super().popitem()
        self.evictions += 1
        return key, value

    def expire(self, time=None):
        expired = super().expire(time)
        if expired:
            self.evictions += len(expired)
        return expired


class LocalCacheTier(Generic[K, V]):
    """In-memory cache tier with size bound and TTL expiration.

    Every public method takes the tier's lock, so the tier can be shared
    between request threads without caller-side locking.

    Args:
        name: Label reported in statistics.
        max_size: Maximum number of entries (default 500).
        ttl_seconds: Seconds an entry lives after it is written
            (default 1800).

    Raises:
        ConfigurationError: If ``max_size`` or ``ttl_seconds`` is not
            positive.
    """

    def __init__(
        self,
        name: str = "default",
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        if max_size <= 0:
            raise ConfigurationError(f"max_size must be positive, got {max_size}")
        if ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._name = name
        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._store = _CountingTTLCache(maxsize=max_size, ttl=ttl_seconds)
        self._lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: K) -> Optional[V]:
        """Look up *key*, counting a hit or a miss."""
        with self._lock:
            value = self._store.get(key)
            if value is None:
                self._misses += 1
                return None
            self._hits += 1
        logger.debug("Local cache hit", extra={"tier": self._name, "cache_key": key})
        return value

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._store[key] = value
        logger.debug("Local cache set", extra={"tier": self._name, "cache_key": key})

    def evict(self, key: K) -> None:
        with self._lock:
            self._store.pop(key, None)
        logger.debug("Local cache evict", extra={"tier": self._name, "cache_key": key})

    def clear(self) -> None:
        """Drop all entries and reset hit, miss and eviction counters."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._store.evictions = 0
            self._hits = 0
            self._misses = 0
        logger.info(
            "Local cache cleared",
            extra={"tier": self._name, "entries_removed": count},
        )

    def contains_key(self, key: K) -> bool:
        with self._lock:
            return key in self._store

    def size(self) -> int:
        with self._lock:
            self._store.expire()
            return len(self._store)

    def stats(self) -> TierStats:
        with self._lock:
            self._store.expire()
            return TierStats(
                name=self._name,
                tier_type="local",
                size=len(self._store),
                hits=self._hits,
                misses=self._misses,
                hit_rate=hit_rate_percent(self._hits, self._misses),
                evictions=self._store.evictions,
            )

    def get_hit_rate(self) -> float:
        with self._lock:
            return hit_rate_percent(self._hits, self._misses)

    def get_hit_count(self) -> int:
        with self._lock:
            return self._hits

    def get_miss_count(self) -> int:
        with self._lock:
            return self._misses
