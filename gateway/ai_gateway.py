"""Public gateway facade.

AIGateway is what feature modules call. It validates input, chooses a
provider through the fallback chain, builds the provider-native request,
executes it and normalizes the answer. Every path returns an Envelope;
nothing raises past ``chat`` or ``test_connection``.

Components are wired explicitly by ``build_gateway``; nothing is created
lazily on first use.

Usage:
    >>> gateway = build_gateway()
    >>> result = gateway.chat(
    ...     [{"role": "user", "content": "Write a tagline for a bakery"}],
    ...     {"provider_hint": "anthropic", "max_tokens": 64},
    ... )
    >>> if result.ok:
    ...     print(result.data.content)
    ... else:
    ...     print(result.message)
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from gateway.catalog import ProviderCatalog
from gateway.config_resolver import ProviderConfigResolver
from gateway.envelope import Envelope, ErrorKind, error, success
from gateway.executor import CallExecutor
from gateway.providers.base import ChatDialect, Message
from gateway.providers.factory import get_dialect
from gateway.rate_limiter import RateLimiter
from gateway.resolver import ProbeFunc, ProviderResolver, tcp_probe
from gateway.response_cache import ResponseCache, make_cache_key
from gateway.store import ConfigurationStore, YamlConfigurationStore
from gateway.transport import HttpTransport, RequestsTransport
from modules.config_loader import ConfigLoader, create_config_loader
from modules.constants import (
    CONNECTION_TEST_MAX_TOKENS,
    CONNECTION_TEST_PROMPT,
    MAX_TEMPERATURE,
    MIN_TEMPERATURE,
    VALID_MESSAGE_ROLES,
)
from modules.error_handler import (
    ConfigurationError,
    ResponseFormatError,
    ValidationError,
    handle_recoverable_error,
)
from modules.logger import setup_logger
from modules.types import GatewaySettings, RateLimits

logger = setup_logger(__name__)

_OPTION_ALIASES = {
    "providerHint": "provider_hint",
    "provider": "provider_hint",
    "maxTokens": "max_tokens",
    "maxRetries": "max_retries",
}


# ============================================================================
# Input Validation
# ============================================================================
def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ChatOptions:
    """Per-request options for ``AIGateway.chat``.

    Attributes:
        provider_hint: Preferred provider id; superseded if unconfigured
        model: Model override for this request
        max_tokens: Completion token limit
        temperature: Sampling temperature (0-2)
        max_retries: Attempt budget for the call
        timeout: Deadline in seconds for the whole call, retries included
    """
    provider_hint: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    max_retries: Optional[int] = None
    timeout: Optional[float] = None

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> ChatOptions:
        """Create ChatOptions from a mapping (snake_case or camelCase keys).

        Raises:
            ValidationError: If any option has an invalid type or range
        """
        normalized: Dict[str, Any] = {}
        for key, value in options.items():
            normalized[_OPTION_ALIASES.get(key, key)] = value

        unknown = sorted(set(normalized) - set(cls.__dataclass_fields__))
        if unknown:
            raise ValidationError(f"Unknown chat option(s): {', '.join(unknown)}")

        options_obj = cls(**{k: v for k, v in normalized.items() if v is not None})
        options_obj.validate()
        return options_obj

    def validate(self) -> None:
        errors: List[str] = []
        if self.provider_hint is not None and not isinstance(self.provider_hint, str):
            errors.append("provider_hint must be a string")
        if self.model is not None and (not isinstance(self.model, str) or not self.model.strip()):
            errors.append("model must be a non-empty string")
        if self.max_tokens is not None and (
            not isinstance(self.max_tokens, int) or isinstance(self.max_tokens, bool) or self.max_tokens <= 0
        ):
            errors.append("max_tokens must be a positive integer")
        if self.temperature is not None and (
            not _is_number(self.temperature) or not MIN_TEMPERATURE <= self.temperature <= MAX_TEMPERATURE
        ):
            errors.append(f"temperature must be a number between {MIN_TEMPERATURE:g} and {MAX_TEMPERATURE:g}")
        if self.max_retries is not None and (
            not isinstance(self.max_retries, int) or isinstance(self.max_retries, bool) or self.max_retries < 0
        ):
            errors.append("max_retries must be a non-negative integer")
        if self.timeout is not None and (not _is_number(self.timeout) or self.timeout <= 0):
            errors.append("timeout must be a positive number of seconds")
        if errors:
            raise ValidationError("; ".join(errors), errors)


def validate_messages(messages: Any) -> List[Message]:
    """Validate chat messages and return normalized copies.

    Raises:
        ValidationError: If the list is empty or any message is malformed
    """
    if not isinstance(messages, Sequence) or isinstance(messages, (str, bytes)) or not messages:
        raise ValidationError("messages must be a non-empty list of {role, content} objects")

    errors: List[str] = []
    normalized: List[Message] = []
    for index, message in enumerate(messages):
        if not isinstance(message, Mapping):
            errors.append(f"message {index} must be an object with role and content")
            continue
        role = message.get("role")
        content = message.get("content")
        if role not in VALID_MESSAGE_ROLES:
            errors.append(f"message {index} has invalid role {role!r}")
        if not isinstance(content, str) or not content.strip():
            errors.append(f"message {index} must have non-empty text content")
        if not errors:
            normalized.append({"role": role, "content": content})

    if errors:
        raise ValidationError("; ".join(errors), errors)
    if all(m["role"] == "system" for m in normalized):
        raise ValidationError("messages must include at least one user or assistant message")
    return normalized


# ============================================================================
# Gateway
# ============================================================================
class AIGateway:
    """Chat entry point combining resolution, rate limiting and execution."""

    def __init__(
        self,
        catalog: ProviderCatalog,
        store: ConfigurationStore,
        config_resolver: ProviderConfigResolver,
        provider_resolver: ProviderResolver,
        rate_limiter: RateLimiter,
        executor: CallExecutor,
        settings: Optional[GatewaySettings] = None,
        dialect_factory: Callable[[Any], ChatDialect] = get_dialect,
        response_cache: Optional[ResponseCache] = None,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.config_resolver = config_resolver
        self.provider_resolver = provider_resolver
        self.rate_limiter = rate_limiter
        self.executor = executor
        self.settings = settings or GatewaySettings()
        self._dialect_factory = dialect_factory
        self.response_cache = response_cache

    def chat(self, messages: Any, options: Optional[ChatOptions | Mapping[str, Any]] = None) -> Envelope:
        """Run a chat request on the best available provider.

        Args:
            messages: List of {role, content} mappings
            options: ChatOptions or a mapping of option values

        Returns:
            Success whose data is a ChatResult, or an Error envelope
        """
        try:
            return self._chat(messages, options)
        except Exception as e:
            handle_recoverable_error(e, "chat request")
            return error(
                ErrorKind.PROCESSING_FAILED,
                "The AI request could not be processed. Please try again.",
                operation="chat",
                exception=type(e).__name__,
            )

    def _chat(self, messages: Any, options: Optional[ChatOptions | Mapping[str, Any]]) -> Envelope:
        try:
            if options is None:
                chat_options = ChatOptions()
            elif isinstance(options, ChatOptions):
                chat_options = options
                chat_options.validate()
            elif isinstance(options, Mapping):
                chat_options = ChatOptions.from_dict(options)
            else:
                raise ValidationError("options must be a mapping")
            normalized = validate_messages(messages)
        except ValidationError as e:
            return error(ErrorKind.INVALID_INPUT, str(e), operation="chat", errors=e.errors)

        provider_id = self.provider_resolver.choose(chat_options.provider_hint)
        if provider_id is None:
            return error(
                ErrorKind.PROVIDER_UNAVAILABLE,
                "No AI provider is configured or reachable. Configure a provider and try again.",
                operation="chat",
                provider_hint=chat_options.provider_hint,
            )

        return self._call_provider(provider_id, normalized, chat_options, operation="chat")

    def test_connection(self, provider_id: str) -> Envelope:
        """Send a minimal request to provider_id to verify its configuration."""
        try:
            config = self.config_resolver.resolve(provider_id)
            if config is None:
                return error(
                    ErrorKind.CONFIGURATION_MISSING,
                    f"Unknown provider '{provider_id}'",
                    provider=provider_id,
                    operation="test_connection",
                )
            options = ChatOptions(max_tokens=CONNECTION_TEST_MAX_TOKENS, max_retries=1)
            messages: List[Message] = [{"role": "user", "content": CONNECTION_TEST_PROMPT}]
            started = time.monotonic()
            result = self._call_provider(provider_id, messages, options, operation="test_connection")
            if result.ok:
                return success(
                    {"provider": provider_id, "model": result.data.model, "status": "connected"},
                    source=provider_id,
                    response_time_ms=round((time.monotonic() - started) * 1000),
                )
            return result
        except Exception as e:
            handle_recoverable_error(e, f"connection test for '{provider_id}'")
            return error(
                ErrorKind.PROCESSING_FAILED,
                f"Connection test for '{provider_id}' could not be completed.",
                provider=provider_id,
                operation="test_connection",
            )

    def _call_provider(
        self,
        provider_id: str,
        messages: List[Message],
        options: ChatOptions,
        operation: str,
    ) -> Envelope:
        config = self.config_resolver.resolve(provider_id)
        if config is None or not config.configured:
            missing = "credential" if config is not None and config.requires_credential else "endpoint"
            return error(
                ErrorKind.CONFIGURATION_MISSING,
                f"Provider '{provider_id}' is not configured (missing {missing})",
                provider=provider_id,
                operation=operation,
            )

        try:
            dialect = self._dialect_factory(config.api_style)
        except ConfigurationError as e:
            return error(ErrorKind.CONFIGURATION_MISSING, str(e), provider=provider_id, operation=operation)

        model = options.model or config.model
        max_tokens = options.max_tokens or self.settings.default_max_tokens
        temperature = self.settings.default_temperature if options.temperature is None else float(options.temperature)
        body = dialect.build_request(messages, model, max_tokens, temperature)

        # Connection tests always reach the provider
        cache_key = None
        if self.response_cache is not None and operation == "chat":
            cache_key = make_cache_key(config, model, body)
            cached = self.response_cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Serving cached response for provider '{provider_id}'")
                return success(cached, source=provider_id, model=cached.model, attempts=0, cached=True)

        result = self.executor.execute(
            config,
            body,
            options.max_retries,
            url=dialect.chat_url(config.endpoint, model),
            headers=dialect.build_headers(config),
            timeout_budget=options.timeout,
            operation=operation,
        )
        if not result.ok:
            return result

        try:
            chat_result = dialect.parse_response(result.data)
        except ResponseFormatError as e:
            return error(
                ErrorKind.INVALID_RESPONSE_FORMAT,
                f"Unexpected response format from {provider_id}: {e}",
                provider=provider_id,
                operation=operation,
            )

        chat_result.provider = provider_id
        chat_result.model = chat_result.model or model
        if cache_key is not None:
            self.response_cache.put(cache_key, chat_result)
        return success(
            chat_result,
            source=provider_id,
            model=chat_result.model,
            attempts=result.meta.get("attempts"),
        )


# ============================================================================
# Wiring
# ============================================================================
def _rate_limits_lookup(config_resolver: ProviderConfigResolver) -> Callable[[str], Optional[RateLimits]]:
    def lookup(provider_id: str) -> Optional[RateLimits]:
        config = config_resolver.resolve(provider_id)
        return config.rate_limits if config is not None else None

    return lookup


def load_settings(config_loader: Optional[ConfigLoader] = None) -> GatewaySettings:
    """Build GatewaySettings from the YAML configuration files.

    A fresh loader is created when none is passed in.
    """
    loader = config_loader if config_loader is not None else create_config_loader()
    return GatewaySettings.from_dict(loader.get_gateway_config(), loader.get_providers_config())


def build_gateway(
    settings: Optional[GatewaySettings] = None,
    store: Optional[ConfigurationStore] = None,
    catalog: Optional[ProviderCatalog] = None,
    transport: Optional[HttpTransport] = None,
    probe: Optional[ProbeFunc] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.time,
    monotonic: Callable[[], float] = time.monotonic,
    config_loader: Optional[ConfigLoader] = None,
) -> AIGateway:
    """Construct a fully wired AIGateway.

    Args:
        settings: Runtime settings (loaded from YAML when omitted)
        store: Configuration store (YAML file at settings.store_path when omitted)
        catalog: Provider catalog (built-in plus providers.yaml templates when omitted)
        transport: HTTP transport (requests-based when omitted)
        probe: Local connectivity probe (TCP connect when omitted)
        sleep: Sleep function used for backoff
        clock: Wall clock used by the rate limiter
        monotonic: Monotonic clock used for call deadlines
        config_loader: Source of the YAML settings when settings is omitted

    Returns:
        Ready-to-use AIGateway
    """
    settings = settings or load_settings(config_loader)
    store = store if store is not None else YamlConfigurationStore(settings.store_path)
    catalog = catalog or ProviderCatalog.from_settings(settings)

    config_resolver = ProviderConfigResolver(catalog, store)
    rate_limiter = RateLimiter(
        limits_lookup=_rate_limits_lookup(config_resolver),
        default_limits=settings.default_rate_limits,
        clock=clock,
    )
    provider_resolver = ProviderResolver(
        catalog,
        store,
        config_resolver=config_resolver,
        probe=probe or tcp_probe,
        probe_timeout=settings.probe_timeout,
        default_primary=settings.primary_provider,
    )
    executor = CallExecutor(
        transport or RequestsTransport(),
        rate_limiter,
        settings=settings,
        sleep=sleep,
        clock=monotonic,
    )
    response_cache = None
    if settings.response_cache_ttl:
        response_cache = ResponseCache(
            ttl=settings.response_cache_ttl,
            max_entries=settings.response_cache_max_entries,
            clock=monotonic,
        )
    logger.debug(f"Gateway wired with {len(catalog)} providers")
    return AIGateway(
        catalog=catalog,
        store=store,
        config_resolver=config_resolver,
        provider_resolver=provider_resolver,
        rate_limiter=rate_limiter,
        executor=executor,
        settings=settings,
        response_cache=response_cache,
    )


__all__ = [
    "AIGateway",
    "ChatOptions",
    "build_gateway",
    "load_settings",
    "validate_messages",
]
