"""Centralized error handling and reporting utilities.

This module defines the exception hierarchy raised inside the gateway's
leaf components (transport, dialects, configuration parsing) together with
small helpers for consistent logging of recoverable and critical failures.

Exceptions never cross the public gateway boundary: CallExecutor and
AIGateway convert them into error envelopes.
"""

from __future__ import annotations

import sys
import traceback
from typing import Any, TypeVar
from collections.abc import Callable

from modules.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Error Classification
# ============================================================================
class GatewayError(Exception):
    """Base exception for gateway errors."""


class ConfigurationError(GatewayError):
    """Exception for configuration-related errors."""


class TransportError(GatewayError):
    """Exception raised when an HTTP request could not be completed."""


class ResponseFormatError(GatewayError):
    """Exception for provider responses that do not have the expected shape."""


class ValidationError(GatewayError):
    """Exception for invalid caller input or provider settings.

    Attributes:
        errors: Individual validation messages
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [message])


# ============================================================================
# Error Handlers
# ============================================================================
def handle_critical_error(
    error: Exception,
    context: str,
    exit_on_error: bool = False,
) -> None:
    """Handle critical errors with consistent logging."""
    logger.exception(f"Critical error in {context}: {error}")

    if exit_on_error:
        sys.exit(1)


def handle_recoverable_error(error: Exception, context: str) -> None:
    """Handle recoverable errors: warn, keep the traceback at debug level."""
    logger.warning(f"Recoverable error in {context}: {error}")
    logger.debug(traceback.format_exc())


def safe_execute(
    func: Callable[..., T],
    *args: Any,
    default: T | None = None,
    context: str = "operation",
    log_errors: bool = True,
    **kwargs: Any,
) -> T | None:
    """Call func and return default instead of raising.

    Failures are reported through handle_recoverable_error unless
    log_errors is False.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        if log_errors:
            handle_recoverable_error(e, context)
        return default


# ============================================================================
# Validation Helpers
# ============================================================================
def validate_config_value(
    value: Any,
    expected_type: type | tuple[type, ...],
    name: str,
    allow_none: bool = False,
) -> None:
    """Raise ConfigurationError unless value is an instance of expected_type.

    Booleans are rejected unless bool itself is among the expected types.
    """
    if value is None and allow_none:
        return

    expected_types = expected_type if isinstance(expected_type, tuple) else (expected_type,)
    is_stray_bool = isinstance(value, bool) and bool not in expected_types
    if is_stray_bool or not isinstance(value, expected_types):
        expected = " or ".join(t.__name__ for t in expected_types)
        raise ConfigurationError(
            f"Invalid configuration for '{name}': expected {expected}, "
            f"got {type(value).__name__}"
        )


# ============================================================================
# Public API
# ============================================================================
__all__ = [
    "GatewayError",
    "ConfigurationError",
    "TransportError",
    "ResponseFormatError",
    "ValidationError",
    "handle_critical_error",
    "handle_recoverable_error",
    "safe_execute",
    "validate_config_value",
]
