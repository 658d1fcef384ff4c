"""
Tests for the cached value and statistics models.
"""

import pytest
from pydantic import ValidationError

from answercache.models import CachedResponse, TierStats, hit_rate_percent


# ---------------------------------------------------------------------------
# CachedResponse
# ---------------------------------------------------------------------------


class TestCachedResponse:
    """Tests for the CachedResponse record."""

    def test_of_stamps_current_time(self) -> None:
        record = CachedResponse.of("Use the dashboard menu.", ["https://docs/dash"])
        assert record.response == "Use the dashboard menu."
        assert record.sources == ["https://docs/dash"]
        assert record.timestamp > 0
        assert 0 <= record.age_millis < 60_000

    def test_of_copies_sources(self) -> None:
        sources = ["a"]
        record = CachedResponse.of("r", sources)
        sources.append("b")
        assert record.sources == ["a"]

    def test_sources_default_empty(self) -> None:
        assert CachedResponse(response="r").sources == []

    def test_response_required(self) -> None:
        with pytest.raises(ValidationError):
            CachedResponse(sources=[])

    def test_is_expired(self) -> None:
        old = CachedResponse(response="r", sources=[], timestamp=0)
        assert old.is_expired(1000) is True
        fresh = CachedResponse.of("r", [])
        assert fresh.is_expired(60_000) is False

    def test_json_round_trip(self) -> None:
        record = CachedResponse(response="r", sources=["s1", "s2"], timestamp=42)
        assert CachedResponse.model_validate_json(record.model_dump_json()) == record


# ---------------------------------------------------------------------------
# TierStats / hit rate
# ---------------------------------------------------------------------------


class TestTierStats:
    def test_defaults(self) -> None:
        stats = TierStats(name="chat-l1", tier_type="local")
        assert stats.size == 0
        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.hit_rate == 0.0
        assert stats.evictions == 0


class TestHitRatePercent:
    def test_no_lookups(self) -> None:
        assert hit_rate_percent(0, 0) == 0.0

    @pytest.mark.parametrize(
        "hits,misses,expected",
        [(1, 0, 100.0), (0, 4, 0.0), (1, 1, 50.0), (2, 1, 200 / 3)],
    )
    def test_percentage(self, hits: int, misses: int, expected: float) -> None:
        assert hit_rate_percent(hits, misses) == pytest.approx(expected)
