"""Tiered fuzzy-matching response cache (in-process L1 / Redis L2)."""

from answercache.cache.local import LocalCacheTier
from answercache.cache.normalizer import QueryNormalizer
from answercache.cache.protocol import CacheTier, Normalizer, StatisticalCacheTier
from answercache.cache.redis_backend import RedisCacheTier
from answercache.cache.tiered import FingerprintRecord, TieredCache

__all__ = [
    "CacheTier",
    "FingerprintRecord",
    "LocalCacheTier",
    "Normalizer",
    "QueryNormalizer",
    "RedisCacheTier",
    "StatisticalCacheTier",
    "TieredCache",
]
