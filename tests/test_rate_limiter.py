"""Tests for gateway/rate_limiter.py - Rolling per-provider windows."""

from __future__ import annotations

import threading

import pytest

from gateway.rate_limiter import RateLimiter
from modules.types import RateLimits


@pytest.fixture
def limiter(clock) -> RateLimiter:
    return RateLimiter(clock=clock)


class TestMayCall:
    """Tests for may_call."""

    def test_fresh_provider_allowed(self, limiter: RateLimiter):
        """A provider with no history may be called."""
        assert limiter.may_call("openai", RateLimits(1, 1)) is True

    def test_minute_limit_enforced(self, limiter: RateLimiter, clock):
        """Calls beyond the per-minute limit are refused."""
        limits = RateLimits(per_minute=3, per_hour=100)
        for _ in range(3):
            assert limiter.may_call("openai", limits)
            limiter.record("openai")
            clock.advance(1)

        assert limiter.may_call("openai", limits) is False

    def test_minute_window_recovers(self, limiter: RateLimiter, clock):
        """Capacity returns once the oldest call leaves the minute window."""
        limits = RateLimits(per_minute=2, per_hour=100)
        limiter.record("openai")
        clock.advance(10)
        limiter.record("openai")
        assert limiter.may_call("openai", limits) is False

        clock.advance(50)  # first call is now exactly 60s old
        assert limiter.may_call("openai", limits) is True

    def test_hour_limit_enforced(self, limiter: RateLimiter, clock):
        """The hour window is enforced independently of the minute window."""
        limits = RateLimits(per_minute=100, per_hour=3)
        for _ in range(3):
            limiter.record("groq")
            clock.advance(120)

        assert limiter.may_call("groq", limits) is False
        clock.advance(3600)
        assert limiter.may_call("groq", limits) is True

    def test_providers_are_independent(self, limiter: RateLimiter):
        """Calls to one provider never affect another."""
        limits = RateLimits(1, 1)
        limiter.record("openai")

        assert limiter.may_call("openai", limits) is False
        assert limiter.may_call("anthropic", limits) is True

    def test_uses_lookup_when_no_limits_given(self, clock):
        """The limits lookup supplies per-provider limits."""
        limiter = RateLimiter(limits_lookup=lambda pid: RateLimits(1, 10), clock=clock)
        limiter.record("openai")

        assert limiter.may_call("openai") is False

    def test_lookup_none_uses_defaults(self, clock):
        """A lookup returning None falls back to default limits."""
        limiter = RateLimiter(limits_lookup=lambda pid: None, default_limits=RateLimits(2, 10), clock=clock)
        limiter.record("x")

        assert limiter.may_call("x") is True
        limiter.record("x")
        assert limiter.may_call("x") is False


class TestRecordAndPrune:
    """Tests for record, prune_older_than and count_within."""

    def test_record_keeps_order_when_clock_steps_back(self, limiter: RateLimiter, clock):
        """Out-of-order timestamps are inserted in sorted position."""
        limiter.record("p")
        clock.advance(-5)
        limiter.record("p")

        timestamps = limiter._log_for("p").timestamps
        assert timestamps == sorted(timestamps)
        assert len(timestamps) == 2

    def test_prune_older_than(self, limiter: RateLimiter, clock):
        """prune_older_than removes entries older than the age."""
        limiter.record("p")
        clock.advance(100)
        limiter.record("p")

        removed = limiter.prune_older_than("p", 50)

        assert removed == 1
        assert limiter.count_within("p", 3600) == 1

    def test_day_old_entries_pruned_on_access(self, limiter: RateLimiter, clock):
        """Entries older than 24 hours disappear on the next access."""
        limiter.record("p")
        clock.advance(86401)
        limiter.record("p")

        assert len(limiter._log_for("p").timestamps) == 1

    def test_count_within(self, limiter: RateLimiter, clock):
        """count_within counts calls in the trailing window."""
        limiter.record("p")
        clock.advance(30)
        limiter.record("p")
        clock.advance(40)

        assert limiter.count_within("p", 60) == 1
        assert limiter.count_within("p", 3600) == 2

    def test_reset(self, limiter: RateLimiter):
        """reset forgets all calls."""
        limiter.record("p")
        limiter.reset("p")
        assert limiter.count_within("p", 3600) == 0

    def test_concurrent_records(self, limiter: RateLimiter):
        """Concurrent record calls are all kept."""
        threads = [threading.Thread(target=lambda: [limiter.record("p") for _ in range(50)]) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert limiter.count_within("p", 60) == 400


class TestGetStats:
    """Tests for get_stats."""

    def test_stats(self, limiter: RateLimiter, clock):
        """Statistics report counts and remaining capacity."""
        limits = RateLimits(per_minute=5, per_hour=50)
        limiter.record("p")
        clock.advance(120)
        limiter.record("p")
        limiter.record("p")

        stats = limiter.get_stats("p", limits)

        assert stats == {
            "provider_id": "p",
            "calls_last_minute": 2,
            "calls_last_hour": 3,
            "calls_last_day": 3,
            "limit_per_minute": 5,
            "limit_per_hour": 50,
            "remaining_minute": 3,
            "remaining_hour": 47,
        }

    def test_remaining_never_negative(self, limiter: RateLimiter):
        """Remaining capacity is clamped at zero."""
        for _ in range(3):
            limiter.record("p")

        stats = limiter.get_stats("p", RateLimits(1, 1))
        assert stats["remaining_minute"] == 0
        assert stats["remaining_hour"] == 0
