"""
Value and statistics models shared by the answercache tiers.

``CachedResponse`` is the record the chat layer stores per answered
question.  The tiers themselves treat it as opaque: the in-process tier
keeps the object, the distributed tier serializes it to JSON.
"""

import time
from typing import List

from pydantic import BaseModel, Field


def _now_millis() -> int:
    return int(time.time() * 1000)


class CachedResponse(BaseModel):
    """A generated answer together with the documents it cites.

    Attributes:
        response: The answer text returned to the user.
        sources: URLs or titles of the passages used to build the answer.
        timestamp: Creation time in epoch milliseconds.
    """

    response: str
    sources: List[str] = Field(default_factory=list)
    timestamp: int = Field(default_factory=_now_millis)

    @classmethod
    def of(cls, response: str, sources: List[str]) -> "CachedResponse":
        """Build a record stamped with the current time."""
        return cls(response=response, sources=list(sources), timestamp=_now_millis())

    def is_expired(self, ttl_millis: int) -> bool:
        return _now_millis() - self.timestamp > ttl_millis

    @property
    def age_millis(self) -> int:
        return _now_millis() - self.timestamp


class TierStats(BaseModel):
    """Point-in-time statistics for one cache tier.

    Attributes:
        name: Tier name (``chat-l1``, ``redis`` ...).
        tier_type: ``local`` or ``redis``.
        size: Current number of entries.
        hits: Cumulative hit count since the last clear.
        misses: Cumulative miss count since the last clear.
        hit_rate: Hits as a percentage of all lookups (0.0 if none).
        evictions: Entries removed by capacity or expiry.
    """

    name: str
    tier_type: str
    size: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    evictions: int = 0


def hit_rate_percent(hits: int, misses: int) -> float:
    """Return ``hits / (hits + misses) * 100``, or 0.0 with no lookups."""
    total = hits + misses
    return hits / total * 100 if total > 0 else 0.0
