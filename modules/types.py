"""Type definitions and settings data structures for the gateway.

This module provides typed, immutable settings built from the loose YAML
dictionaries returned by ConfigLoader. Invalid values never abort start-up:
they fall back to the defaults in modules.constants with a logged warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from modules.constants import (
    DEFAULT_CONNECTION_BACKOFF_BASE,
    DEFAULT_CONNECTION_BACKOFF_CAP,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_RATE_LIMIT_PER_HOUR,
    DEFAULT_RATE_LIMIT_PER_MINUTE,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESPONSE_CACHE_MAX_ENTRIES,
    DEFAULT_RETRY_AFTER_SECONDS,
    DEFAULT_TEMPERATURE,
    MAX_RETRY_AFTER_SECONDS,
)
from modules.error_handler import ConfigurationError, validate_config_value
from modules.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_STORE_PATH = "~/.ai_gateway/settings.yaml"


# ============================================================================
# Value Coercion Helpers
# ============================================================================
def coerce_positive_int(value: Any) -> Optional[int]:
    """Return value as a positive int, or None when it is not one.

    Accepts ints and integer-valued strings ("60", " 120 "). Booleans,
    floats with a fractional part, zero and negatives are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _is_valid(value: Any, expected_type: Union[type, Tuple[type, ...]], key: str) -> bool:
    """Return True when value has the expected type, warning otherwise."""
    try:
        validate_config_value(value, expected_type, key, allow_none=True)
    except ConfigurationError as e:
        logger.warning(f"{e}; using default")
        return False
    return True


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None or not _is_valid(value, dict, key):
        return {}
    return value


def _get_int(data: Dict[str, Any], key: str, default: int, minimum: int = 0) -> int:
    """Safely get an integer value from config dictionary."""
    value = data.get(key, default)
    if not _is_valid(value, (int, str), key):
        return default
    try:
        parsed = int(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid integer for '{key}', using default: {default}")
        return default
    if parsed < minimum:
        logger.warning(f"Value for '{key}' must be >= {minimum}, using default: {default}")
        return default
    return parsed


def _get_float(data: Dict[str, Any], key: str, default: float) -> float:
    """Safely get a positive float value from config dictionary."""
    value = data.get(key, default)
    if not _is_valid(value, (int, float, str), key):
        return default
    try:
        parsed = float(value)
    except (ValueError, TypeError):
        logger.warning(f"Invalid number for '{key}', using default: {default}")
        return default
    if parsed <= 0:
        logger.warning(f"Value for '{key}' must be > 0, using default: {default}")
        return default
    return parsed


def _get_bool(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None or not _is_valid(value, bool, key):
        return default
    return value


def _get_optional_float(data: Dict[str, Any], key: str) -> Optional[float]:
    if data.get(key) is None:
        return None
    value = _get_float(data, key, -1.0)
    return value if value > 0 else None


def _get_str(data: Dict[str, Any], key: str, default: Optional[str]) -> Optional[str]:
    """Safely get a string value from config dictionary."""
    value = data.get(key, default)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


# ============================================================================
# Configuration Data Classes
# ============================================================================
@dataclass(frozen=True)
class RateLimits:
    """Per-provider request ceilings for the trailing minute and hour."""
    per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE
    per_hour: int = DEFAULT_RATE_LIMIT_PER_HOUR

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]], fallback: Optional[RateLimits] = None) -> RateLimits:
        """Create RateLimits from a {per_minute, per_hour} mapping."""
        base = fallback or cls()
        if not isinstance(config, dict):
            return base
        per_minute = coerce_positive_int(config.get("per_minute"))
        per_hour = coerce_positive_int(config.get("per_hour"))
        if config.get("per_minute") is not None and per_minute is None:
            logger.warning(f"Invalid per_minute rate limit {config.get('per_minute')!r}, using {base.per_minute}")
        if config.get("per_hour") is not None and per_hour is None:
            logger.warning(f"Invalid per_hour rate limit {config.get('per_hour')!r}, using {base.per_hour}")
        return cls(
            per_minute=per_minute or base.per_minute,
            per_hour=per_hour or base.per_hour,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"per_minute": self.per_minute, "per_hour": self.per_hour}


@dataclass(frozen=True)
class GatewaySettings:
    """Runtime settings for the gateway, built from gateway.yaml and providers.yaml."""
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    call_deadline: Optional[float] = None
    max_retries: int = DEFAULT_MAX_RETRIES
    connection_backoff_base: float = DEFAULT_CONNECTION_BACKOFF_BASE
    connection_backoff_cap: float = DEFAULT_CONNECTION_BACKOFF_CAP
    default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS
    max_retry_after: float = MAX_RETRY_AFTER_SECONDS
    default_rate_limits: RateLimits = field(default_factory=RateLimits)
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    default_max_tokens: int = DEFAULT_MAX_TOKENS
    default_temperature: float = DEFAULT_TEMPERATURE
    response_cache_ttl: Optional[float] = None
    response_cache_max_entries: int = DEFAULT_RESPONSE_CACHE_MAX_ENTRIES
    store_path: str = DEFAULT_STORE_PATH
    log_level: str = "INFO"
    verbose: bool = False
    log_file: Optional[str] = None
    primary_provider: Optional[str] = None
    extra_providers: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def from_dict(
        cls,
        config: Dict[str, Any],
        providers_config: Optional[Dict[str, Any]] = None,
    ) -> GatewaySettings:
        """Create GatewaySettings from gateway.yaml (and optional providers.yaml) dictionaries."""
        http = _section(config, "http")
        retry = _section(config, "retry")
        resolver = _section(config, "resolver")
        chat = _section(config, "chat")
        cache = _section(config, "cache")
        store = _section(config, "store")
        logging_cfg = _section(config, "logging")
        providers_config = providers_config or {}

        temperature = chat.get("temperature", DEFAULT_TEMPERATURE)
        if not _is_valid(temperature, (int, float, str), "temperature"):
            temperature = DEFAULT_TEMPERATURE
        try:
            temperature = float(temperature)
        except (TypeError, ValueError):
            logger.warning(f"Invalid temperature {temperature!r}, using default: {DEFAULT_TEMPERATURE}")
            temperature = DEFAULT_TEMPERATURE

        extras = providers_config.get("extra_providers") or []
        if not _is_valid(extras, list, "extra_providers"):
            extras = []

        return cls(
            request_timeout=_get_float(http, "request_timeout", DEFAULT_REQUEST_TIMEOUT),
            call_deadline=_get_optional_float(http, "call_deadline"),
            max_retries=_get_int(retry, "max_retries", DEFAULT_MAX_RETRIES),
            connection_backoff_base=_get_float(retry, "connection_backoff_base", DEFAULT_CONNECTION_BACKOFF_BASE),
            connection_backoff_cap=_get_float(retry, "connection_backoff_cap", DEFAULT_CONNECTION_BACKOFF_CAP),
            default_retry_after=_get_float(retry, "default_retry_after", DEFAULT_RETRY_AFTER_SECONDS),
            max_retry_after=_get_float(retry, "max_retry_after", MAX_RETRY_AFTER_SECONDS),
            default_rate_limits=RateLimits.from_dict(_section(config, "rate_limits")),
            probe_timeout=_get_float(resolver, "probe_timeout", DEFAULT_PROBE_TIMEOUT),
            default_max_tokens=_get_int(chat, "max_tokens", DEFAULT_MAX_TOKENS, minimum=1),
            default_temperature=temperature,
            response_cache_ttl=_get_optional_float(cache, "ttl"),
            response_cache_max_entries=_get_int(
                cache, "max_entries", DEFAULT_RESPONSE_CACHE_MAX_ENTRIES, minimum=1
            ),
            store_path=_get_str(store, "path", DEFAULT_STORE_PATH) or DEFAULT_STORE_PATH,
            log_level=(_get_str(logging_cfg, "level", "INFO") or "INFO").upper(),
            verbose=_get_bool(logging_cfg, "verbose", False),
            log_file=_get_str(logging_cfg, "file", None),
            primary_provider=_get_str(providers_config, "primary_provider", None),
            extra_providers=tuple(item for item in extras if isinstance(item, dict)),
        )


# ============================================================================
# Public API
# ============================================================================
__all__ = [
    "RateLimits",
    "GatewaySettings",
    "coerce_positive_int",
    "DEFAULT_STORE_PATH",
]
