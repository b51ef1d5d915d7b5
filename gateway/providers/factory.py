"""Dialect factory.

Maps a provider's API style to the dialect that speaks it. Dialect classes
are imported lazily and instantiated once per style.
"""

from __future__ import annotations

import importlib
import threading
from typing import Dict, Type

from gateway.catalog import ApiStyle
from gateway.providers.base import ChatDialect
from modules.error_handler import ConfigurationError
from modules.logger import setup_logger

logger = setup_logger(__name__)

_DIALECT_CLASSES: Dict[ApiStyle, str] = {
    ApiStyle.OPENAI: "gateway.providers.openai_provider.OpenAIDialect",
    ApiStyle.ANTHROPIC: "gateway.providers.anthropic_provider.AnthropicDialect",
    ApiStyle.HUGGINGFACE: "gateway.providers.huggingface_provider.HuggingFaceDialect",
    ApiStyle.OLLAMA: "gateway.providers.ollama_provider.OllamaDialect",
}

_instances: Dict[ApiStyle, ChatDialect] = {}
_instances_lock = threading.Lock()


def _import_dialect_class(style: ApiStyle) -> Type[ChatDialect]:
    """Dynamically import a dialect class."""
    module_name, class_name = _DIALECT_CLASSES[style].rsplit(".", 1)
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


def get_dialect(api_style: ApiStyle | str) -> ChatDialect:
    """Return the dialect for api_style.

    Raises:
        ConfigurationError: If the style is unknown
    """
    try:
        style = ApiStyle(api_style)
    except ValueError as e:
        supported = ", ".join(s.value for s in ApiStyle)
        raise ConfigurationError(f"Unknown API style {api_style!r}. Supported: {supported}") from e

    with _instances_lock:
        dialect = _instances.get(style)
        if dialect is None:
            dialect = _import_dialect_class(style)()
            _instances[style] = dialect
            logger.debug(f"Loaded dialect for API style '{style.value}'")
    return dialect


def get_supported_styles() -> list[str]:
    return [style.value for style in _DIALECT_CLASSES]


__all__ = ["get_dialect", "get_supported_styles"]
