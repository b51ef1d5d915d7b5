"""Centralized constants for the AI provider gateway.

This module provides a single source of truth for default values and
configuration keys used throughout the gateway.
"""

from __future__ import annotations

# ============================================================================
# HTTP Call Defaults
# ============================================================================
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_CONNECTION_BACKOFF_BASE = 1.0
DEFAULT_CONNECTION_BACKOFF_CAP = 10.0
DEFAULT_RETRY_AFTER_SECONDS = 60.0
MAX_RETRY_AFTER_SECONDS = 60.0
ERROR_MESSAGE_MAX_CHARS = 200

# ============================================================================
# Rate Limiter Defaults
# ============================================================================
DEFAULT_RATE_LIMIT_PER_MINUTE = 60
DEFAULT_RATE_LIMIT_PER_HOUR = 1000
MINUTE_WINDOW_SECONDS = 60
HOUR_WINDOW_SECONDS = 3600
RETENTION_WINDOW_SECONDS = 86400

# ============================================================================
# Provider Resolution Defaults
# ============================================================================
DEFAULT_PROBE_TIMEOUT = 0.5
PRIMARY_PROVIDER_KEY = "gateway.primaryProvider"

# Override fields stored under "{provider_id}.{field}"
FIELD_CREDENTIAL = "credential"
FIELD_ENDPOINT = "endpoint"
FIELD_MODEL = "model"
FIELD_RATE_LIMIT_PER_MINUTE = "rateLimitPerMinute"
FIELD_RATE_LIMIT_PER_HOUR = "rateLimitPerHour"
OVERRIDE_FIELDS = (
    FIELD_CREDENTIAL,
    FIELD_ENDPOINT,
    FIELD_MODEL,
    FIELD_RATE_LIMIT_PER_MINUTE,
    FIELD_RATE_LIMIT_PER_HOUR,
)

# ============================================================================
# Chat Request Defaults
# ============================================================================
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
VALID_MESSAGE_ROLES = frozenset({"system", "user", "assistant"})
ANTHROPIC_API_VERSION = "2023-06-01"
CONNECTION_TEST_PROMPT = "Hello"
CONNECTION_TEST_MAX_TOKENS = 10

# ============================================================================
# Response Cache Defaults
# ============================================================================
# Suggested lifetime when caching is enabled; caching is off unless configured
RESPONSE_CACHE_TTL_SECONDS = 3600
DEFAULT_RESPONSE_CACHE_MAX_ENTRIES = 256

# ============================================================================
# Envelope Constants
# ============================================================================
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
CREDENTIAL_MASK_VISIBLE_CHARS = 4

# ============================================================================
# Environment Variables
# ============================================================================
CONFIG_DIR_ENV_VAR = "AI_GATEWAY_CONFIG_DIR"

# ============================================================================
# Public API
# ============================================================================
__all__ = [
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_CONNECTION_BACKOFF_BASE",
    "DEFAULT_CONNECTION_BACKOFF_CAP",
    "DEFAULT_RETRY_AFTER_SECONDS",
    "MAX_RETRY_AFTER_SECONDS",
    "ERROR_MESSAGE_MAX_CHARS",
    "DEFAULT_RATE_LIMIT_PER_MINUTE",
    "DEFAULT_RATE_LIMIT_PER_HOUR",
    "MINUTE_WINDOW_SECONDS",
    "HOUR_WINDOW_SECONDS",
    "RETENTION_WINDOW_SECONDS",
    "DEFAULT_PROBE_TIMEOUT",
    "PRIMARY_PROVIDER_KEY",
    "FIELD_CREDENTIAL",
    "FIELD_ENDPOINT",
    "FIELD_MODEL",
    "FIELD_RATE_LIMIT_PER_MINUTE",
    "FIELD_RATE_LIMIT_PER_HOUR",
    "OVERRIDE_FIELDS",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "MIN_TEMPERATURE",
    "MAX_TEMPERATURE",
    "VALID_MESSAGE_ROLES",
    "ANTHROPIC_API_VERSION",
    "CONNECTION_TEST_PROMPT",
    "CONNECTION_TEST_MAX_TOKENS",
    "RESPONSE_CACHE_TTL_SECONDS",
    "DEFAULT_RESPONSE_CACHE_MAX_ENTRIES",
    "TIMESTAMP_FORMAT",
    "CREDENTIAL_MASK_VISIBLE_CHARS",
    "CONFIG_DIR_ENV_VAR",
]
