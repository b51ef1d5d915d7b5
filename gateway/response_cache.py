"""Optional time-limited cache of successful chat answers.

Keys are SHA-256 digests of everything that shapes a provider call: provider
id, endpoint, credential, model and the exact request body. Editing any of
these in the store therefore misses the cache on the next call instead of
serving an answer produced under the old configuration. Cached answers never
reach the transport and are not recorded by the rate limiter.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Tuple

from gateway.config_resolver import ProviderConfig
from gateway.providers.base import ChatResult
from modules.constants import DEFAULT_RESPONSE_CACHE_MAX_ENTRIES, RESPONSE_CACHE_TTL_SECONDS
from modules.logger import setup_logger

logger = setup_logger(__name__)


def make_cache_key(config: ProviderConfig, model: str, body: Dict[str, Any]) -> str:
    """Return a deterministic digest for a call to config with body."""
    key_parts = [
        config.provider_id,
        config.endpoint,
        config.auth_credential or "",
        model or "",
        json.dumps(body, sort_keys=True, ensure_ascii=False, default=str),
    ]
    return hashlib.sha256("\x1f".join(key_parts).encode("utf-8")).hexdigest()


class ResponseCache:
    """Bounded TTL cache of ChatResult values.

    Args:
        ttl: Lifetime of an entry in seconds
        max_entries: Entries kept before the oldest is evicted
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        ttl: float = RESPONSE_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_RESPONSE_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, Tuple[float, ChatResult]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[ChatResult]:
        """Return a copy of the cached answer, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, result = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return replace(result)

    def put(self, key: str, result: ChatResult) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + self.ttl, replace(result))
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached response {evicted[:12]}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "ResponseCache",
    "make_cache_key",
]
