"""
Contracts for the pieces the tiered response cache is assembled from.

Tiers and normalizers are matched structurally: any object providing
the listed methods can be plugged into :class:`TieredCache`.
"""

from typing import AbstractSet, Any, Optional, Protocol, Set, runtime_checkable

from answercache.models import TierStats


@runtime_checkable
class CacheTier(Protocol):
    """Protocol for a single cache level keyed by cache-key strings."""

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or ``None`` on a miss."""
        ...

    def put(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""
        ...

    def evict(self, key: str) -> None:
        """Remove *key* if present."""
        ...

    def clear(self) -> None:
        """Remove every entry and reset the tier's counters."""
        ...

    def contains_key(self, key: str) -> bool:
        """Check presence without touching the hit/miss counters."""
        ...

    def size(self) -> int:
        """Return the current number of entries."""
        ...

    def stats(self) -> TierStats:
        """Return the tier's statistics block."""
        ...


@runtime_checkable
class StatisticalCacheTier(CacheTier, Protocol):
    """A cache tier that also exposes its counters directly."""

    def get_hit_rate(self) -> float:
        """Hit rate as a percentage (0-100)."""
        ...

    def get_hit_count(self) -> int:
        ...

    def get_miss_count(self) -> int:
        ...


@runtime_checkable
class Normalizer(Protocol):
    """Protocol for turning raw queries into canonical forms."""

    def normalize(self, text: str) -> str:
        ...

    def tokenize(self, text: str) -> Set[str]:
        ...

    def generate_cache_key(self, canonical: str) -> str:
        ...

    def jaccard_similarity(self, set_a: AbstractSet[str], set_b: AbstractSet[str]) -> float:
        ...
