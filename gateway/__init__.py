"""AI provider gateway.

This package routes chat requests to external AI providers:

- **catalog**: static provider templates and their fallback order
- **config_resolver**: template + stored override merging (``{provider_id}.{field}``)
- **resolver**: explicit -> primary -> any configured -> local probe fallback chain
- **rate_limiter**: per-provider rolling minute/hour windows
- **executor**: HTTP call with retry/backoff and response classification
- **envelope**: Success / Error / ErrorWithFallback results and the error taxonomy
- **ai_gateway**: the ``chat(messages, options)`` facade and explicit wiring
- **configurator**: provider administration (configure, remove, primary, status)

Example:
    >>> from gateway import build_gateway
    >>> gateway = build_gateway()
    >>> result = gateway.chat([{"role": "user", "content": "Hello"}])
"""

from gateway.ai_gateway import AIGateway, ChatOptions, build_gateway
from gateway.catalog import AuthScheme, ProviderCatalog, ProviderTemplate
from gateway.config_resolver import ProviderConfig, ProviderConfigResolver
from gateway.configurator import ProviderConfigurator
from gateway.envelope import Envelope, Error, ErrorKind, ErrorWithFallback, Severity, Success
from gateway.executor import CallExecutor
from gateway.rate_limiter import RateLimiter
from gateway.resolver import ProviderResolver
from gateway.store import ConfigurationStore, InMemoryConfigurationStore, YamlConfigurationStore

__all__ = [
    # Facade
    "AIGateway",
    "ChatOptions",
    "build_gateway",
    # Providers
    "AuthScheme",
    "ProviderCatalog",
    "ProviderTemplate",
    "ProviderConfig",
    "ProviderConfigResolver",
    "ProviderResolver",
    "ProviderConfigurator",
    # Execution
    "CallExecutor",
    "RateLimiter",
    # Results
    "Envelope",
    "Error",
    "ErrorKind",
    "ErrorWithFallback",
    "Severity",
    "Success",
    # Storage
    "ConfigurationStore",
    "InMemoryConfigurationStore",
    "YamlConfigurationStore",
]
