"""Logging configuration and setup utilities.

This module provides a standardized logger setup for the gateway with
separation between operator-facing messages and detailed technical logs.
All modules should use setup_logger(__name__) to get a properly configured logger.

Every handler installed here carries a RedactingFilter so provider
credentials never reach log output, regardless of which module logged them.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Optional

# Public API
__all__ = [
    "setup_logger",
    "set_log_level",
    "setup_console_handler",
    "setup_file_handler",
    "redact_for_log",
    "RedactingFilter",
]

# Constants
DEFAULT_LOG_LEVEL = logging.INFO
USER_LOG_LEVEL = logging.WARNING  # Only show warnings and errors to operators by default
DETAILED_FORMAT = "[%(levelname)s] %(asctime)s - %(name)s - %(message)s"
SIMPLE_FORMAT = "[%(levelname)s] %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SECRET_SUBSTITUTIONS = (
    (re.compile(r"sk-[A-Za-z0-9_-]{8,}"), "[REDACTED]"),
    (re.compile(r"Bearer\s+[\w.~+/=-]{8,}"), "Bearer [REDACTED]"),
    (re.compile(r"\b([A-Z][A-Z0-9_]*API_KEY)=\S+"), r"\1=[REDACTED]"),
    (re.compile(r"(['\"]?x-api-key['\"]?\s*[:=]\s*['\"]?)[^'\"\s,}]+", re.IGNORECASE), r"\1[REDACTED]"),
)


def redact_for_log(text: str) -> str:
    """Redact potential secrets from a string before logging.

    Replaces OpenAI-style keys (sk-...), Bearer tokens, x-api-key header
    values and env-var-style key assignments with [REDACTED].
    """
    for pattern, replacement in _SECRET_SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Logging filter that scrubs secrets from the fully formatted message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_for_log(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logger(
    name: str,
    level: int = DEFAULT_LOG_LEVEL,
    format_string: Optional[str] = None,
    date_format: Optional[str] = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Set up a standardized logger for the gateway.

    This function creates or retrieves a logger with the specified name and
    configures it with a StreamHandler if it doesn't already have handlers.

    Args:
        name: Name for the logger (typically __name__ from the calling module)
        level: Logging level for detailed logging (default: INFO)
        format_string: Custom format string for console messages
        date_format: Custom date format for timestamps
        verbose: If True, show all logs on console; if False, only warnings/errors

    Returns:
        Configured Logger instance

    Example:
        >>> logger = setup_logger(__name__)
        >>> logger.info("This goes to detailed logs only")
        >>> logger.warning("This shows on console and in detailed logs")
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stderr)
        console_level = level if verbose else USER_LOG_LEVEL
        console_handler.setLevel(console_level)

        console_formatter = logging.Formatter(
            fmt=format_string or SIMPLE_FORMAT,
            datefmt=date_format or DEFAULT_DATE_FORMAT,
        )
        console_handler.setFormatter(console_formatter)
        console_handler.addFilter(RedactingFilter())

        logger.addHandler(console_handler)
        logger.setLevel(level)

        # Prevent propagation to avoid duplicate logs
        logger.propagate = False

    # Records are scrubbed before any handler, including ones added later, sees them
    if not any(isinstance(f, RedactingFilter) for f in logger.filters):
        logger.addFilter(RedactingFilter())

    return logger


def setup_console_handler(
    logger: logging.Logger,
    level: int = USER_LOG_LEVEL,
    simple_format: bool = True,
) -> None:
    """
    Add or update console handler for a logger.

    Args:
        logger: Logger instance to modify
        level: Logging level for console output
        simple_format: If True, use simple format; otherwise detailed format
    """
    for handler in logger.handlers[:]:
        if isinstance(handler, logging.StreamHandler) and handler.stream == sys.stderr:
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    format_str = SIMPLE_FORMAT if simple_format else DETAILED_FORMAT
    formatter = logging.Formatter(fmt=format_str, datefmt=DEFAULT_DATE_FORMAT)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RedactingFilter())

    logger.addHandler(console_handler)


def setup_file_handler(
    logger: logging.Logger,
    log_file_path: str,
    level: int = logging.DEBUG,
) -> None:
    """
    Add file handler to logger for detailed logging.

    Args:
        logger: Logger instance to modify
        log_file_path: Path to log file
        level: Logging level for file output (default: DEBUG for full details)
    """
    file_handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
    file_handler.setLevel(level)

    formatter = logging.Formatter(
        fmt=DETAILED_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
    )
    file_handler.setFormatter(formatter)
    file_handler.addFilter(RedactingFilter())

    logger.addHandler(file_handler)


def set_log_level(logger: logging.Logger, level: int) -> None:
    """
    Change the log level of an existing logger.

    Args:
        logger: The logger instance to modify
        level: New logging level (e.g., logging.DEBUG, logging.INFO)
    """
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
