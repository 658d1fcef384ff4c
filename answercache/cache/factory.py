"""
Wiring of the chat response cache from :class:`~answercache.config.Settings`.

Builds the in-process tier, and when ``redis.enabled`` is set, a Redis
client with bounded connect/read timeouts plus the distributed tier on
top of it.
"""

import logging
from typing import Any, Optional, Type

import redis

from answercache.cache.local import LocalCacheTier
from answercache.cache.normalizer import QueryNormalizer
from answercache.cache.redis_backend import RedisCacheTier
from answercache.cache.tiered import TieredCache
from answercache.config import Settings, get_settings
from answercache.models import CachedResponse

logger = logging.getLogger(__name__)


def create_redis_client(url: str, timeout_seconds: float) -> Any:
    """Create a Redis client whose calls fail after *timeout_seconds*."""
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout_seconds,
        socket_connect_timeout=timeout_seconds,
    )


def build_response_cache(
    settings: Optional[Settings] = None,
    *,
    redis_client: Optional[Any] = None,
    normalizer: Optional[QueryNormalizer] = None,
    value_type: Type[Any] = CachedResponse,
) -> TieredCache:
    """Assemble the tiered chat-response cache.

    Args:
        settings: Settings to use; defaults to :func:`get_settings`.
        redis_client: Pre-built client for the distributed tier.  When
            omitted and Redis is enabled, one is created from
            ``settings.redis.url``.
        normalizer: Shared normalizer instance; a default one is built
            otherwise.
        value_type: Type of cached values (default ``CachedResponse``).

    Returns:
        A ready :class:`TieredCache`.
    """
    settings = settings or get_settings()
    cache_cfg = settings.cache
    redis_cfg = settings.redis

    local_tier = LocalCacheTier(
        name="chat-l1",
        max_size=cache_cfg.local_max_size,
        ttl_seconds=cache_cfg.local_ttl_seconds,
    )

    distributed_tier = None
    if redis_cfg.enabled:
        client = redis_client or create_redis_client(redis_cfg.url, redis_cfg.timeout_seconds)
        distributed_tier = RedisCacheTier(
            client=client,
            value_type=value_type,
            key_prefix=redis_cfg.key_prefix,
            ttl_seconds=redis_cfg.ttl_seconds,
        )

    cache = TieredCache(
        local_tier=local_tier,
        normalizer=normalizer or QueryNormalizer(),
        distributed_tier=distributed_tier,
        similarity_threshold=cache_cfg.similarity_threshold,
    )
    logger.info(
        "Response cache built",
        extra={
            "local_max_size": cache_cfg.local_max_size,
            "redis_enabled": redis_cfg.enabled,
            "similarity_threshold": cache_cfg.similarity_threshold,
        },
    )
    return cache
