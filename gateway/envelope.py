"""Standardized result envelopes and the gateway's error taxonomy.

Every public gateway operation returns one of three immutable value objects:

- Success: the call produced data; ``meta`` records when and from which source.
- Error: a terminal failure described by a closed ``ErrorKind`` with a fixed
  numeric code and severity.
- ErrorWithFallback: an Error that also carries a substitute value computed by
  the caller. The gateway never builds these itself; feature modules attach
  their own fallback through ``Error.with_fallback``.

Severity only selects the log level (high -> ERROR, medium -> WARNING,
low -> INFO). Control flow never branches on it.

Usage:
    >>> result = error(ErrorKind.RATE_LIMITED, "Slow down", provider="openai")
    >>> result.ok
    False
    >>> result.to_dict()["error"]["code"]
    1005
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from collections.abc import Mapping
from typing import Any, ClassVar, Dict, Union

from modules.constants import TIMESTAMP_FORMAT
from modules.logger import setup_logger

logger = setup_logger(__name__)


# ============================================================================
# Error Taxonomy
# ============================================================================
class Severity(str, Enum):
    """Logging priority of an error kind."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the gateway."""
    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    CONNECTION_FAILED = "ConnectionFailed"
    INVALID_RESPONSE_FORMAT = "InvalidResponseFormat"
    CONFIGURATION_MISSING = "ConfigurationMissing"
    RATE_LIMITED = "RateLimited"
    INVALID_INPUT = "InvalidInput"
    PROCESSING_FAILED = "ProcessingFailed"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    ACCESS_FORBIDDEN = "AccessForbidden"
    API_ERROR = "ApiError"
    SERVER_ERROR = "ServerError"
    MAX_RETRIES_EXCEEDED = "MaxRetriesExceeded"

    @property
    def code(self) -> int:
        return _ERROR_CODES[self]

    @property
    def severity(self) -> Severity:
        return _SEVERITIES[self]


_ERROR_CODES: Dict[ErrorKind, int] = {
    ErrorKind.PROVIDER_UNAVAILABLE: 1001,
    ErrorKind.CONNECTION_FAILED: 1002,
    ErrorKind.INVALID_RESPONSE_FORMAT: 1003,
    ErrorKind.CONFIGURATION_MISSING: 1004,
    ErrorKind.RATE_LIMITED: 1005,
    ErrorKind.INVALID_INPUT: 1006,
    ErrorKind.PROCESSING_FAILED: 1007,
    # 1008 was the legacy "fallback used" marker and stays unassigned
    ErrorKind.AUTHENTICATION_FAILED: 1009,
    ErrorKind.ACCESS_FORBIDDEN: 1010,
    ErrorKind.API_ERROR: 1011,
    ErrorKind.SERVER_ERROR: 1012,
    ErrorKind.MAX_RETRIES_EXCEEDED: 1013,
}

_SEVERITIES: Dict[ErrorKind, Severity] = {
    ErrorKind.PROVIDER_UNAVAILABLE: Severity.HIGH,
    ErrorKind.CONNECTION_FAILED: Severity.HIGH,
    ErrorKind.INVALID_RESPONSE_FORMAT: Severity.MEDIUM,
    ErrorKind.CONFIGURATION_MISSING: Severity.HIGH,
    ErrorKind.RATE_LIMITED: Severity.MEDIUM,
    ErrorKind.INVALID_INPUT: Severity.LOW,
    ErrorKind.PROCESSING_FAILED: Severity.MEDIUM,
    ErrorKind.AUTHENTICATION_FAILED: Severity.HIGH,
    ErrorKind.ACCESS_FORBIDDEN: Severity.HIGH,
    ErrorKind.API_ERROR: Severity.MEDIUM,
    ErrorKind.SERVER_ERROR: Severity.HIGH,
    ErrorKind.MAX_RETRIES_EXCEEDED: Severity.MEDIUM,
}

_LOG_LEVELS: Dict[Severity, int] = {
    Severity.HIGH: logging.ERROR,
    Severity.MEDIUM: logging.WARNING,
    Severity.LOW: logging.INFO,
}


def now_timestamp() -> str:
    """Current UTC time in the envelope timestamp format."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


def _plain(value: Any) -> Any:
    """Convert nested value objects into JSON-friendly structures."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    return value


# ============================================================================
# Envelope Value Objects
# ============================================================================
@dataclass(frozen=True)
class Success:
    """Successful gateway result."""
    data: Any = field(hash=False)
    meta: Mapping[str, Any] = field(default_factory=dict, hash=False)

    ok: ClassVar[bool] = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "meta", _freeze(self.meta))

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "data": _plain(self.data), "meta": _plain(self.meta)}


@dataclass(frozen=True)
class Error:
    """Terminal gateway failure.

    Attributes:
        code: Stable numeric code of the kind
        message: Human-readable description, safe to show to end users
        kind: Error kind from the closed taxonomy
        severity: Fixed severity of the kind
        timestamp: UTC creation time
        context: Read-only diagnostic details (provider id, operation, HTTP code, ...)
    """
    code: int
    message: str
    kind: ErrorKind
    severity: Severity
    timestamp: str
    context: Mapping[str, Any] = field(default_factory=dict, hash=False)

    ok: ClassVar[bool] = False
    fallback_used: ClassVar[bool] = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", _freeze(self.context))

    def with_fallback(self, fallback: Any) -> ErrorWithFallback:
        """Return a copy of this error carrying a caller-computed substitute value."""
        return ErrorWithFallback(
            code=self.code,
            message=self.message,
            kind=self.kind,
            severity=self.severity,
            timestamp=self.timestamp,
            context=self.context,
            fallback=fallback,
        )

    def _error_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp,
            "context": _plain(self.context),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self._error_dict()}


@dataclass(frozen=True)
class ErrorWithFallback(Error):
    """Error accompanied by a substitute value computed outside the gateway."""
    fallback: Any = field(default=None, hash=False)

    fallback_used: ClassVar[bool] = True

    def to_dict(self) -> Dict[str, Any]:
        error_dict = self._error_dict()
        error_dict["fallback_used"] = True
        return {"success": False, "error": error_dict, "fallback": _plain(self.fallback)}


Envelope = Union[Success, Error, ErrorWithFallback]


# ============================================================================
# Factories
# ============================================================================
def success(data: Any, source: str, **meta: Any) -> Success:
    """Build a Success envelope stamped with the current time and its source."""
    return Success(data=data, meta={"timestamp": now_timestamp(), "source": source, **meta})


def error(kind: ErrorKind, message: str, **context: Any) -> Error:
    """Build an Error envelope for kind and log it at the kind's severity.

    Args:
        kind: Error kind from the closed taxonomy
        message: Human-readable message
        **context: Diagnostic details stored read-only on the envelope

    Returns:
        The new Error envelope
    """
    result = Error(
        code=kind.code,
        message=message,
        kind=kind,
        severity=kind.severity,
        timestamp=now_timestamp(),
        context=context,
    )
    details = ", ".join(f"{key}={value}" for key, value in context.items())
    logger.log(
        _LOG_LEVELS[kind.severity],
        f"[{kind.value}:{kind.code}] {message}" + (f" ({details})" if details else ""),
    )
    return result


# ============================================================================
# Public API
# ============================================================================
__all__ = [
    "Severity",
    "ErrorKind",
    "Success",
    "Error",
    "ErrorWithFallback",
    "Envelope",
    "success",
    "error",
    "now_timestamp",
]
