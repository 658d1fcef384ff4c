"""
Redis-backed distributed cache tier (L2).

Thin layer over a shared Redis client.  Keys are ``<prefix><cache_key>``,
values are JSON produced from the configured value type, and the TTL is
handed to Redis at write time.  Any Redis or serialization failure is
logged and turned into a miss (reads) or a no-op (writes) so a slow or
unreachable store never fails the request.

Hit/miss counters are kept on the instance: with several processes
sharing one Redis they are per-process approximations.
"""

import logging
import threading
from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import TypeAdapter

from answercache.exceptions import ConfigurationError
from answercache.models import TierStats, hit_rate_percent

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_KEY_PREFIX = "cache:"
DEFAULT_TTL_SECONDS = 3600


class RedisCacheTier(Generic[V]):
    """Distributed cache tier over a synchronous ``redis`` client.

    The client is owned by the caller: this class never closes it.  Use
    a client built with ``socket_timeout``/``socket_connect_timeout`` so
    a stalled server surfaces as an error within a bounded time.

    Args:
        client: A ``redis.Redis`` (or compatible) client created with
            ``decode_responses=True``.
        value_type: Type of the cached values, used to build the
            pydantic ``TypeAdapter`` for (de)serialization.
        key_prefix: Namespace for all keys; a trailing ``:`` is added
            when missing (default ``cache:``).
        ttl_seconds: Expiry applied by Redis to each written key
            (default 3600).
        name: Label reported in statistics.

    Raises:
        ConfigurationError: If no client or value type is supplied, or
            the TTL is not positive.
    """

    def __init__(
        self,
        client: Any,
        value_type: Optional[Type[V]],
        key_prefix: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        name: str = "redis",
    ) -> None:
        if client is None:
            raise ConfigurationError("A Redis client is required for RedisCacheTier")
        if value_type is None:
            raise ConfigurationError("A value type must be specified for RedisCacheTier")
        if ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {ttl_seconds}")

        if key_prefix:
            self._key_prefix = key_prefix if key_prefix.endswith(":") else key_prefix + ":"
        else:
            self._key_prefix = DEFAULT_KEY_PREFIX
        self._client = client
        self._adapter: TypeAdapter = TypeAdapter(value_type)
        self._ttl_seconds = ttl_seconds
        self._name = name
        self._lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0

        logger.info(
            "RedisCacheTier initialized",
            extra={"prefix": self._key_prefix, "ttl_seconds": ttl_seconds},
        )

    @property
    def key_prefix(self) -> str:
        return self._key_prefix

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def _key(self, cache_key: str) -> str:
        """Return full Redis key for a cache key."""
        return f"{self._key_prefix}{cache_key}"

    def _record(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def get(self, key: str) -> Optional[V]:
        """Read and deserialize *key*; errors count as a miss."""
        try:
            data = self._client.get(self._key(key))
            if data is not None:
                value = self._adapter.validate_json(data)
                self._record(hit=True)
                logger.debug("Redis cache hit", extra={"cache_key": key})
                return value
        except Exception as e:
            logger.warning(
                "Redis get failed",
                extra={"cache_key": key, "error": str(e)},
            )
        self._record(hit=False)
        return None

    def put(self, key: str, value: V) -> None:
        """Serialize and write *value* with the tier TTL; errors are dropped."""
        try:
            payload = self._adapter.dump_json(value)
            self._client.set(self._key(key), payload, ex=self._ttl_seconds)
            logger.debug("Redis cache set", extra={"cache_key": key})
        except Exception as e:
            logger.warning(
                "Redis set failed",
                extra={"cache_key": key, "error": str(e)},
            )

    def evict(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
            logger.debug("Redis cache evict", extra={"cache_key": key})
        except Exception as e:
            logger.warning(
                "Redis delete failed",
                extra={"cache_key": key, "error": str(e)},
            )

    def clear(self) -> None:
        """Delete every key under the prefix and reset the counters.

        Walks the keyspace with ``SCAN``; meant for administrative
        flushes, not the request path.
        """
        try:
            keys = list(self._client.scan_iter(match=f"{self._key_prefix}*"))
            if keys:
                self._client.delete(*keys)
            logger.info(
                "Redis cache cleared",
                extra={"prefix": self._key_prefix, "entries_removed": len(keys)},
            )
        except Exception as e:
            logger.warning("Redis clear failed", extra={"error": str(e)})
        with self._lock:
            self._hits = 0
            self._misses = 0

    def contains_key(self, key: str) -> bool:
        try:
            return bool(self._client.exists(self._key(key)))
        except Exception as e:
            logger.warning(
                "Redis exists failed",
                extra={"cache_key": key, "error": str(e)},
            )
            return False

    def size(self) -> int:
        try:
            return sum(1 for _ in self._client.scan_iter(match=f"{self._key_prefix}*"))
        except Exception as e:
            logger.warning("Redis size scan failed", extra={"error": str(e)})
            return 0

    def stats(self) -> TierStats:
        with self._lock:
            hits, misses = self._hits, self._misses
        return TierStats(
            name=self._name,
            tier_type="redis",
            size=self.size(),
            hits=hits,
            misses=misses,
            hit_rate=hit_rate_percent(hits, misses),
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

    def is_available(self) -> bool:
        """Return True when the server answers ``PING``."""
        try:
            return bool(self._client.ping())
        except Exception as e:
            logger.warning("Redis ping failed", extra={"error": str(e)})
            return False
