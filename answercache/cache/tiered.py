"""
Tiered, fuzzy-matching response cache.

Composes the in-process tier, an optional distributed tier and the
query normalizer.  A lookup walks four states:

1. exact hit in the in-process tier;
2. fuzzy hit: the closest fingerprint (Jaccard similarity of token
   sets, at or above the threshold) whose entry is still in-process;
3. promoted hit: exact key found in the distributed tier, copied into
   the in-process tier and fingerprinted;
4. miss: ``None``; the caller computes the answer and calls ``put``.

No public method raises.  Two threads missing on the same query may
both recompute and both ``put``; the last write wins.
"""

import logging
import threading
from typing import Any, Dict, FrozenSet, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict

from answercache.cache.protocol import Normalizer, StatisticalCacheTier
from answercache.exceptions import ConfigurationError
from answercache.models import hit_rate_percent

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_SIMILARITY_THRESHOLD = 0.85


class FingerprintRecord(BaseModel):
    """Canonical query string mapped to the cache key it was stored under.

    Attributes:
        canonical: Normalized query string.
        cache_key: Key of the in-process entry.
        tokens: Token set of ``canonical``, kept for similarity scans.
    """

    model_config = ConfigDict(frozen=True)

    canonical: str
    cache_key: str
    tokens: FrozenSet[str]


class TieredCache(Generic[V]):
    """Two-tier response cache with fuzzy matching on normalized queries.

    Args:
        local_tier: In-process tier; owned by this cache.
        normalizer: Query normalizer used for keys and similarity.
        distributed_tier: Optional shared tier.  Its client is owned by
            the caller and never closed here.
        similarity_threshold: Minimum Jaccard similarity for a fuzzy hit,
            in ``[0, 1]`` (default 0.85).
        max_fingerprints: Index size that triggers a compaction pass.
            Defaults to twice the local tier's ``max_size``.

    Raises:
        ConfigurationError: If a required collaborator is missing or the
            threshold is outside ``[0, 1]``.
    """

    def __init__(
        self,
        local_tier: StatisticalCacheTier,
        normalizer: Normalizer,
        distributed_tier: Optional[StatisticalCacheTier] = None,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_fingerprints: Optional[int] = None,
    ) -> None:
        if local_tier is None:
            raise ConfigurationError("An in-process cache tier is required")
        if normalizer is None:
            raise ConfigurationError("A query normalizer is required")
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ConfigurationError(
                f"similarity_threshold must be within [0, 1], got {similarity_threshold}"
            )
        self._l1 = local_tier
        self._l2 = distributed_tier
        self._normalizer = normalizer
        self._threshold = similarity_threshold
        if max_fingerprints is None:
            local_max = getattr(local_tier, "max_size", None)
            if isinstance(local_max, int):
                max_fingerprints = 2 * local_max
        self._max_fingerprints = max_fingerprints
        self._fingerprints: Dict[str, FingerprintRecord] = {}
        self._fp_lock = threading.Lock()

    @property
    def similarity_threshold(self) -> float:
        return self._threshold

    @property
    def distributed_enabled(self) -> bool:
        return self._l2 is not None

    # ------------------------------------------------------------------
    # Lookup / insert
    # ------------------------------------------------------------------

    def _canonicalize(self, query: str) -> Tuple[str, str]:
        canonical = self._normalizer.normalize(query)
        return canonical, self._normalizer.generate_cache_key(canonical)

    def get(self, query: str) -> Optional[V]:
        """Return the cached value for *query*, or ``None`` on a miss."""
        try:
            canonical, cache_key = self._canonicalize(query)

            value = self._l1.get(cache_key)
            if value is not None:
                return value

            value = self._find_fuzzy_match(canonical)
            if value is not None:
                return value

            if self._l2 is not None:
                value = self._l2.get(cache_key)
                if value is not None:
                    self._l1.put(cache_key, value)
                    self._register(canonical, cache_key)
                    logger.debug(
                        "Promoted distributed hit",
                        extra={"cache_key": cache_key},
                    )
                    return value
        except Exception as exc:
            logger.warning(
                "Cache lookup failed",
                extra={"query_prefix": str(query)[:40], "error": str(exc)},
            )
        return None

    def put(self, query: str, value: V) -> None:
        """Store *value* in every tier and fingerprint its canonical query."""
        try:
            canonical, cache_key = self._canonicalize(query)
            self._l1.put(cache_key, value)
            self._register(canonical, cache_key)
        except Exception as exc:
            logger.warning(
                "Cache store failed",
                extra={"query_prefix": str(query)[:40], "error": str(exc)},
            )
            return

        if self._l2 is not None:
            try:
                self._l2.put(cache_key, value)
                logger.debug("Also stored in distributed tier", extra={"cache_key": cache_key})
            except Exception as exc:
                logger.warning(
                    "Distributed store failed",
                    extra={"cache_key": cache_key, "error": str(exc)},
                )

    def evict(self, query: str) -> None:
        """Remove the entry and fingerprint for this exact canonical query.

        Other phrasings stored under a different canonical string keep
        their own entries, even if they would fuzzy-match this one.
        """
        try:
            canonical, cache_key = self._canonicalize(query)
            self._l1.evict(cache_key)
            with self._fp_lock:
                self._fingerprints.pop(canonical, None)
            if self._l2 is not None:
                self._l2.evict(cache_key)
        except Exception as exc:
            logger.warning(
                "Cache evict failed",
                extra={"query_prefix": str(query)[:40], "error": str(exc)},
            )

    def clear(self) -> None:
        """Empty both tiers and the fingerprint index, resetting counters."""
        try:
            self._l1.clear()
            with self._fp_lock:
                self._fingerprints.clear()
            if self._l2 is not None:
                self._l2.clear()
            logger.info("Tiered cache cleared")
        except Exception as exc:
            logger.warning("Cache clear failed", extra={"error": str(exc)})

    def contains_key(self, query: str) -> bool:
        try:
            _, cache_key = self._canonicalize(query)
            if self._l1.contains_key(cache_key):
                return True
            return self._l2 is not None and self._l2.contains_key(cache_key)
        except Exception as exc:
            logger.warning("Cache contains check failed", extra={"error": str(exc)})
            return False

    def size(self) -> int:
        return self._l1.size()

    # ------------------------------------------------------------------
    # Fingerprint index
    # ------------------------------------------------------------------

    def _register(self, canonical: str, cache_key: str) -> None:
        record = FingerprintRecord(
            canonical=canonical,
            cache_key=cache_key,
            tokens=frozenset(self._normalizer.tokenize(canonical)),
        )
        with self._fp_lock:
            self._fingerprints[canonical] = record
            over_limit = (
                self._max_fingerprints is not None
                and len(self._fingerprints) > self._max_fingerprints
            )
        if over_limit:
            self.compact_fingerprints()

    def _find_fuzzy_match(self, canonical: str) -> Optional[V]:
        tokens = self._normalizer.tokenize(canonical)
        if not tokens:
            return None

        with self._fp_lock:
            records = list(self._fingerprints.values())

        candidates: List[Tuple[float, FingerprintRecord]] = []
        for record in records:
            similarity = self._normalizer.jaccard_similarity(tokens, record.tokens)
            if similarity > 0.0 and similarity >= self._threshold:
                candidates.append((similarity, record))
        # Highest similarity first; ties go to the smallest cache key.
        candidates.sort(key=lambda item: (-item[0], item[1].cache_key))

        for similarity, record in candidates:
            if not self._l1.contains_key(record.cache_key):
                self._drop_fingerprint(record)
                continue
            value = self._l1.get(record.cache_key)
            if value is not None:
                logger.debug(
                    "Fuzzy match found",
                    extra={
                        "similarity": round(similarity, 4),
                        "cache_key": record.cache_key,
                    },
                )
                return value
        return None

    def _drop_fingerprint(self, record: FingerprintRecord) -> None:
        # The entry may have been re-put since the unlocked check.
        with self._fp_lock:
            current = self._fingerprints.get(record.canonical)
            if current is None or self._l1.contains_key(current.cache_key):
                return
            del self._fingerprints[record.canonical]

    def compact_fingerprints(self) -> int:
        """Drop fingerprints whose entry has left the in-process tier.

        Returns:
            Number of fingerprints removed.
        """
        with self._fp_lock:
            stale = [
                canonical
                for canonical, record in self._fingerprints.items()
                if not self._l1.contains_key(record.cache_key)
            ]
            for canonical in stale:
                del self._fingerprints[canonical]
            remaining = len(self._fingerprints)
        if stale:
            logger.debug(
                "Fingerprint index compacted",
                extra={"removed": len(stale), "remaining": remaining},
            )
        return len(stale)

    def fingerprint_count(self) -> int:
        with self._fp_lock:
            return len(self._fingerprints)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """Return both tiers' stat blocks plus index size and threshold."""
        stats: Dict[str, Any] = {
            "l1": self._l1.stats().model_dump(),
            "fingerprints": self.fingerprint_count(),
            "similarity_threshold": self._threshold,
        }
        stats["l2"] = self._l2.stats().model_dump() if self._l2 is not None else "disabled"

        total_hits = self.get_hit_count()
        total_misses = self.get_miss_count()
        stats["total_hits"] = total_hits
        stats["total_misses"] = total_misses
        stats["combined_hit_rate"] = (
            f"{hit_rate_percent(total_hits, total_misses):.2f}%"
            if total_hits + total_misses > 0
            else "N/A"
        )
        return stats

    def get_hit_rate(self) -> float:
        """In-process hit rate in percent; the in-process tier is the primary signal."""
        return self._l1.get_hit_rate()

    def get_hit_count(self) -> int:
        hits = self._l1.get_hit_count()
        if self._l2 is not None:
            hits += self._l2.get_hit_count()
        return hits

    def get_miss_count(self) -> int:
        misses = self._l1.get_miss_count()
        if self._l2 is not None:
            misses += self._l2.get_miss_count()
        return misses

    def is_distributed_available(self) -> bool:
        """True when a distributed tier is configured and answers a liveness probe."""
        if self._l2 is None:
            return False
        probe = getattr(self._l2, "is_available", None)
        return bool(probe()) if probe is not None else True
