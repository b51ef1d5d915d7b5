"""Configuration loader for YAML-based settings.

This module provides centralized configuration loading for the AI provider
gateway. It loads YAML configuration files from the modules/config/ directory
(or the directory named by the AI_GATEWAY_CONFIG_DIR environment variable)
and provides access to configuration values.

Supported Configuration Files:
1. **gateway.yaml**: Timeouts, retry/backoff policy, probe timeout, store path, logging
2. **providers.yaml**: Primary provider default and additional provider templates

Usage Pattern:
    >>> from modules.config_loader import ConfigLoader
    >>> loader = ConfigLoader()
    >>> loader.load_configs()
    >>> gateway_config = loader.get_gateway_config()
    >>> providers_config = loader.get_providers_config()

Path Constants:
- PROJECT_ROOT: Root directory of the project
- MODULES_DIR: modules/ directory
- CONFIG_DIR: modules/config/ directory

The loader handles missing files gracefully, returning empty dictionaries and logging
warnings when configuration files are not found or contain invalid YAML.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from modules.constants import CONFIG_DIR_ENV_VAR
from modules.logger import setup_logger

logger = setup_logger(__name__)

# ============================================================================
# Path Resolution
# ============================================================================
PROJECT_ROOT = Path(__file__).resolve().parents[1]
MODULES_DIR = Path(__file__).resolve().parent
CONFIG_DIR = MODULES_DIR / "config"

GATEWAY_CONFIG_FILE = "gateway.yaml"
PROVIDERS_CONFIG_FILE = "providers.yaml"


def resolve_config_dir() -> Path:
    """Return the active configuration directory, honoring the env override."""
    override = os.environ.get(CONFIG_DIR_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return CONFIG_DIR


# ============================================================================
# Configuration Loader Class
# ============================================================================
class ConfigLoader:
    """
    Lightweight loader for the gateway's YAML configs.

    Example:
        >>> loader = ConfigLoader()
        >>> loader.load_configs()
        >>> loader.get_gateway_config().get("http", {})
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self.config_dir = config_dir if config_dir is not None else resolve_config_dir()
        self._gateway: dict[str, Any] = {}
        self._providers: dict[str, Any] = {}

    def load_configs(self) -> None:
        """
        Load all configuration files from the config directory.

        This method loads:
        - gateway.yaml: HTTP, retry, probe, store and logging settings
        - providers.yaml: primary provider and extra provider templates

        Errors during loading are logged but do not raise exceptions.
        """
        self._gateway = self._load_yaml_config(GATEWAY_CONFIG_FILE)
        self._providers = self._load_yaml_config(PROVIDERS_CONFIG_FILE)

    def _load_yaml_config(self, filename: str) -> dict[str, Any]:
        """Load a single YAML configuration file."""
        config_path = self.config_dir / filename

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return {}

        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)

            if not isinstance(data, dict):
                logger.warning(f"Config file {filename} did not contain a dictionary. Using empty config.")
                return {}

            return data

        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error in {filename}: {e}")
            return {}
        except OSError as e:
            logger.error(f"Error loading config {filename}: {e}")
            return {}

    def get_gateway_config(self) -> dict[str, Any]:
        """Get the gateway configuration."""
        return dict(self._gateway)

    def get_providers_config(self) -> dict[str, Any]:
        """Get the providers configuration."""
        return dict(self._providers)

    def is_loaded(self) -> bool:
        """Check if configurations have been loaded."""
        return bool(self._gateway or self._providers)


# ============================================================================
# Factory
# ============================================================================
def create_config_loader(config_dir: Path | None = None) -> ConfigLoader:
    """Build a ConfigLoader and load its files once.

    Each call returns a new instance; callers pass it on explicitly.
    """
    loader = ConfigLoader(config_dir)
    loader.load_configs()
    logger.debug(f"Loaded configuration from {loader.config_dir}")
    return loader


# ============================================================================
# Public API
# ============================================================================
__all__ = [
    "ConfigLoader",
    "create_config_loader",
    "resolve_config_dir",
    "PROJECT_ROOT",
    "MODULES_DIR",
    "CONFIG_DIR",
    "GATEWAY_CONFIG_FILE",
    "PROVIDERS_CONFIG_FILE",
]
