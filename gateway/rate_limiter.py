"""Per-provider rolling-window rate limiting.

Each provider owns an append-only, time-ordered log of call timestamps.
Windows (trailing minute, trailing hour) are counted fresh from the log on
every check by bisection, so there is no separate counter that could drift.
Entries older than the retention window (24 hours) are pruned lazily on each
access.

Providers are fully independent: each log has its own lock, and a short
registry lock only guards lazy creation of those per-provider entries.
"""

from __future__ import annotations

import bisect
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from modules.constants import (
    HOUR_WINDOW_SECONDS,
    MINUTE_WINDOW_SECONDS,
    RETENTION_WINDOW_SECONDS,
)
from modules.logger import setup_logger
from modules.types import RateLimits

logger = setup_logger(__name__)


@dataclass
class _ProviderLog:
    timestamps: List[float] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)


class RateLimiter:
    """Rolling timestamp-log limiter keyed by provider id.

    Args:
        limits_lookup: Optional callable returning the current RateLimits of a
            provider; used when ``may_call`` is not given explicit limits
        default_limits: Limits applied when neither explicit limits nor the
            lookup provide any
        clock: Time source in seconds (injectable for tests)
    """

    def __init__(
        self,
        limits_lookup: Optional[Callable[[str], Optional[RateLimits]]] = None,
        default_limits: Optional[RateLimits] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limits_lookup = limits_lookup
        self.default_limits = default_limits or RateLimits()
        self._clock = clock
        self._logs: Dict[str, _ProviderLog] = {}
        self._registry_lock = threading.Lock()

    def _log_for(self, provider_id: str) -> _ProviderLog:
        log = self._logs.get(provider_id)
        if log is None:
            with self._registry_lock:
                log = self._logs.setdefault(provider_id, _ProviderLog())
        return log

    def _limits_for(self, provider_id: str, limits: Optional[RateLimits]) -> RateLimits:
        if limits is not None:
            return limits
        if self._limits_lookup is not None:
            looked_up = self._limits_lookup(provider_id)
            if looked_up is not None:
                return looked_up
        return self.default_limits

    @staticmethod
    def _prune_locked(log: _ProviderLog, cutoff: float) -> int:
        index = bisect.bisect_left(log.timestamps, cutoff)
        if index:
            del log.timestamps[:index]
        return index

    @staticmethod
    def _count_since_locked(log: _ProviderLog, cutoff: float) -> int:
        # Entries exactly at the cutoff have aged out of the window
        return len(log.timestamps) - bisect.bisect_right(log.timestamps, cutoff)

    def may_call(self, provider_id: str, limits: Optional[RateLimits] = None) -> bool:
        """Return True if a new call to provider_id fits both trailing windows."""
        effective = self._limits_for(provider_id, limits)
        log = self._log_for(provider_id)
        with log.lock:
            now = self._clock()
            self._prune_locked(log, now - RETENTION_WINDOW_SECONDS)
            per_minute = self._count_since_locked(log, now - MINUTE_WINDOW_SECONDS)
            per_hour = self._count_since_locked(log, now - HOUR_WINDOW_SECONDS)

        allowed = per_minute < effective.per_minute and per_hour < effective.per_hour
        if not allowed:
            logger.info(
                f"Rate limit reached for '{provider_id}': "
                f"{per_minute}/{effective.per_minute} per minute, {per_hour}/{effective.per_hour} per hour"
            )
        return allowed

    def record(self, provider_id: str) -> None:
        """Append the current time to provider_id's call log."""
        log = self._log_for(provider_id)
        with log.lock:
            now = self._clock()
            self._prune_locked(log, now - RETENTION_WINDOW_SECONDS)
            if log.timestamps and now < log.timestamps[-1]:
                # Keep the log sorted even if the clock steps backwards
                bisect.insort(log.timestamps, now)
            else:
                log.timestamps.append(now)

    def prune_older_than(self, provider_id: str, seconds: float = RETENTION_WINDOW_SECONDS) -> int:
        """Drop entries older than seconds; returns how many were removed."""
        log = self._log_for(provider_id)
        with log.lock:
            return self._prune_locked(log, self._clock() - seconds)

    def count_within(self, provider_id: str, seconds: float) -> int:
        log = self._log_for(provider_id)
        with log.lock:
            now = self._clock()
            self._prune_locked(log, now - RETENTION_WINDOW_SECONDS)
            return self._count_since_locked(log, now - seconds)

    def reset(self, provider_id: str) -> None:
        """Forget every recorded call of provider_id."""
        log = self._log_for(provider_id)
        with log.lock:
            log.timestamps.clear()

    def get_stats(self, provider_id: str, limits: Optional[RateLimits] = None) -> Dict[str, Any]:
        """Return call counts and remaining capacity for provider_id."""
        effective = self._limits_for(provider_id, limits)
        log = self._log_for(provider_id)
        with log.lock:
            now = self._clock()
            self._prune_locked(log, now - RETENTION_WINDOW_SECONDS)
            minute = self._count_since_locked(log, now - MINUTE_WINDOW_SECONDS)
            hour = self._count_since_locked(log, now - HOUR_WINDOW_SECONDS)
            day = len(log.timestamps)

        return {
            "provider_id": provider_id,
            "calls_last_minute": minute,
            "calls_last_hour": hour,
            "calls_last_day": day,
            "limit_per_minute": effective.per_minute,
            "limit_per_hour": effective.per_hour,
            "remaining_minute": max(0, effective.per_minute - minute),
            "remaining_hour": max(0, effective.per_hour - hour),
        }


__all__ = ["RateLimiter"]
