"""Provider dialects.

Each dialect translates the gateway's chat request into one provider API
family and normalizes the answer into a ChatResult:
- openai: OpenAI and compatible servers (OpenRouter, Groq, Together, LM Studio)
- anthropic: Anthropic Messages API
- huggingface: Hugging Face Inference API
- ollama: Ollama native chat API

Usage:
    >>> from gateway.providers import get_dialect
    >>> dialect = get_dialect("anthropic")
    >>> body = dialect.build_request(messages, "claude-3-haiku-20240307", 256, 0.2)

Lazy imports keep dialect modules out of start-up until first use.
"""

from __future__ import annotations


def __getattr__(name: str):
    """Lazy import of dialect classes and factory helpers."""

    if name in ("ChatDialect", "ChatResult"):
        from gateway.providers.base import ChatDialect, ChatResult
        return {"ChatDialect": ChatDialect, "ChatResult": ChatResult}[name]

    if name in ("get_dialect", "get_supported_styles"):
        from gateway.providers.factory import get_dialect, get_supported_styles
        return {"get_dialect": get_dialect, "get_supported_styles": get_supported_styles}[name]

    if name == "OpenAIDialect":
        from gateway.providers.openai_provider import OpenAIDialect
        return OpenAIDialect

    if name == "AnthropicDialect":
        from gateway.providers.anthropic_provider import AnthropicDialect
        return AnthropicDialect

    if name == "HuggingFaceDialect":
        from gateway.providers.huggingface_provider import HuggingFaceDialect
        return HuggingFaceDialect

    if name == "OllamaDialect":
        from gateway.providers.ollama_provider import OllamaDialect
        return OllamaDialect

    raise AttributeError(f"module 'gateway.providers' has no attribute '{name}'")


__all__ = [
    "ChatDialect",
    "ChatResult",
    "get_dialect",
    "get_supported_styles",
    "OpenAIDialect",
    "AnthropicDialect",
    "HuggingFaceDialect",
    "OllamaDialect",
]
