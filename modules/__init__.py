"""Modules package for the AI provider gateway.

This package contains shared infrastructure: configuration loading, logging,
settings types, constants and error handling.
"""

__all__ = [
    "config_loader",
    "constants",
    "error_handler",
    "logger",
    "types",
]
