"""Static provider catalog.

The catalog is the read-only table of provider templates known to the
gateway, in a fixed order that also defines fallback priority. It is built
once at start-up from the built-in templates plus any ``extra_providers``
declared in providers.yaml, and is never mutated afterwards.

Runtime settings (credentials, endpoint overrides, model choices) never live
here; they are merged in by ProviderConfigResolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional

from modules.error_handler import ConfigurationError
from modules.logger import setup_logger
from modules.types import GatewaySettings, RateLimits

logger = setup_logger(__name__)


class AuthScheme(str, Enum):
    """How a provider expects its credential to be sent."""
    NONE = "none"
    BEARER = "bearer"
    API_KEY_HEADER = "api-key-header"


class ApiStyle(str, Enum):
    """Request/response dialect spoken by a provider endpoint."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ProviderTemplate:
    """Immutable catalog entry describing one provider.

    Attributes:
        id: Stable provider identifier, also the prefix of its store keys
        display_name: Human-readable name
        base_endpoint: Default API base URL
        auth_scheme: Credential transport; ``none`` means no credential is required
        default_model: Model used when neither an override nor a request names one
        capabilities: Free-form capability tags
        default_rate_limits: Request ceilings used when no override is stored
        api_style: Dialect used to build requests and parse responses
        auth_header: Header carrying the key for ``api-key-header`` providers
        local: Whether the provider is a self-hosted endpoint eligible for probing
        credential_env: Environment variable that may seed the credential
    """
    id: str
    display_name: str
    base_endpoint: str
    auth_scheme: AuthScheme
    default_model: str
    capabilities: FrozenSet[str] = frozenset({"chat"})
    default_rate_limits: RateLimits = field(default_factory=RateLimits)
    api_style: ApiStyle = ApiStyle.OPENAI
    auth_header: str = "x-api-key"
    local: bool = False
    credential_env: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id or "." in self.id:
            raise ConfigurationError(f"Invalid provider id {self.id!r}: must be non-empty and contain no '.'")
        if self.local and self.auth_scheme is not AuthScheme.NONE:
            raise ConfigurationError(f"Local provider '{self.id}' must use auth scheme 'none'")

    @property
    def requires_credential(self) -> bool:
        return self.auth_scheme is not AuthScheme.NONE

    @classmethod
    def from_dict(cls, config: Dict[str, Any], default_limits: Optional[RateLimits] = None) -> ProviderTemplate:
        """Create a ProviderTemplate from a providers.yaml entry.

        Raises:
            ConfigurationError: If a required field is missing or an enum value is unknown
        """
        missing = [key for key in ("id", "base_endpoint", "auth_scheme", "default_model") if not config.get(key)]
        if missing:
            raise ConfigurationError(f"Provider template is missing fields: {', '.join(missing)}")

        try:
            auth_scheme = AuthScheme(str(config["auth_scheme"]).lower())
            api_style = ApiStyle(str(config.get("api_style", ApiStyle.OPENAI.value)).lower())
        except ValueError as e:
            raise ConfigurationError(f"Provider template '{config['id']}': {e}") from e

        capabilities = config.get("capabilities") or ["chat"]
        if not isinstance(capabilities, (list, tuple, set)):
            raise ConfigurationError(f"Provider template '{config['id']}': capabilities must be a list")

        local = bool(config.get("local", False))
        tags = frozenset(str(tag) for tag in capabilities)
        if local:
            tags = tags | {"local"}

        return cls(
            id=str(config["id"]),
            display_name=str(config.get("display_name") or config["id"]),
            base_endpoint=str(config["base_endpoint"]).rstrip("/"),
            auth_scheme=auth_scheme,
            default_model=str(config["default_model"]),
            capabilities=tags,
            default_rate_limits=RateLimits.from_dict(config.get("rate_limits"), default_limits),
            api_style=api_style,
            auth_header=str(config.get("auth_header") or "x-api-key"),
            local=local,
            credential_env=config.get("credential_env") or None,
        )


# ============================================================================
# Built-in Templates
# ============================================================================
DEFAULT_TEMPLATES: tuple[ProviderTemplate, ...] = (
    ProviderTemplate(
        id="openai",
        display_name="OpenAI",
        base_endpoint="https://api.openai.com/v1",
        auth_scheme=AuthScheme.BEARER,
        default_model="gpt-4o-mini",
        capabilities=frozenset({"chat", "vision", "embeddings"}),
        default_rate_limits=RateLimits(60, 1000),
        credential_env="OPENAI_API_KEY",
    ),
    ProviderTemplate(
        id="anthropic",
        display_name="Anthropic Claude",
        base_endpoint="https://api.anthropic.com",
        auth_scheme=AuthScheme.API_KEY_HEADER,
        default_model="claude-3-haiku-20240307",
        capabilities=frozenset({"chat", "vision", "long-context"}),
        default_rate_limits=RateLimits(50, 1000),
        api_style=ApiStyle.ANTHROPIC,
        credential_env="ANTHROPIC_API_KEY",
    ),
    ProviderTemplate(
        id="huggingface",
        display_name="Hugging Face Inference",
        base_endpoint="https://api-inference.huggingface.co",
        auth_scheme=AuthScheme.BEARER,
        default_model="mistralai/Mistral-7B-Instruct-v0.2",
        capabilities=frozenset({"chat", "text-generation"}),
        default_rate_limits=RateLimits(30, 1000),
        api_style=ApiStyle.HUGGINGFACE,
        credential_env="HUGGINGFACE_API_KEY",
    ),
    ProviderTemplate(
        id="openrouter",
        display_name="OpenRouter",
        base_endpoint="https://openrouter.ai/api/v1",
        auth_scheme=AuthScheme.BEARER,
        default_model="openai/gpt-4o-mini",
        capabilities=frozenset({"chat", "multi-model"}),
        default_rate_limits=RateLimits(60, 1000),
        credential_env="OPENROUTER_API_KEY",
    ),
    ProviderTemplate(
        id="groq",
        display_name="Groq",
        base_endpoint="https://api.groq.com/openai/v1",
        auth_scheme=AuthScheme.BEARER,
        default_model="llama-3.1-8b-instant",
        capabilities=frozenset({"chat", "fast-inference"}),
        default_rate_limits=RateLimits(30, 1000),
        credential_env="GROQ_API_KEY",
    ),
    ProviderTemplate(
        id="together",
        display_name="Together AI",
        base_endpoint="https://api.together.xyz/v1",
        auth_scheme=AuthScheme.BEARER,
        default_model="mistralai/Mixtral-8x7B-Instruct-v0.1",
        capabilities=frozenset({"chat", "open-models"}),
        default_rate_limits=RateLimits(60, 1000),
        credential_env="TOGETHER_API_KEY",
    ),
    ProviderTemplate(
        id="ollama",
        display_name="Ollama (local)",
        base_endpoint="http://localhost:11434",
        auth_scheme=AuthScheme.NONE,
        default_model="llama3",
        capabilities=frozenset({"chat", "local"}),
        default_rate_limits=RateLimits(60, 1000),
        api_style=ApiStyle.OLLAMA,
        local=True,
    ),
    ProviderTemplate(
        id="lm-studio",
        display_name="LM Studio (local)",
        base_endpoint="http://localhost:1234/v1",
        auth_scheme=AuthScheme.NONE,
        default_model="local-model",
        capabilities=frozenset({"chat", "local"}),
        default_rate_limits=RateLimits(60, 1000),
        local=True,
    ),
    ProviderTemplate(
        id="localhost",
        display_name="Local OpenAI-compatible server",
        base_endpoint="http://localhost:8000/v1",
        auth_scheme=AuthScheme.NONE,
        default_model="default",
        capabilities=frozenset({"chat", "local"}),
        default_rate_limits=RateLimits(60, 1000),
        local=True,
    ),
)


# ============================================================================
# Catalog
# ============================================================================
class ProviderCatalog:
    """Ordered, read-only collection of provider templates."""

    def __init__(self, templates: Iterable[ProviderTemplate]) -> None:
        self._templates: Dict[str, ProviderTemplate] = {}
        for template in templates:
            if template.id in self._templates:
                raise ConfigurationError(f"Duplicate provider id in catalog: '{template.id}'")
            self._templates[template.id] = template

    @classmethod
    def default(cls) -> ProviderCatalog:
        return cls(DEFAULT_TEMPLATES)

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> ProviderCatalog:
        """Build the built-in catalog extended with providers.yaml templates.

        Invalid or duplicate extra templates are skipped with a warning.
        """
        templates: List[ProviderTemplate] = list(DEFAULT_TEMPLATES)
        known = {template.id for template in templates}
        for entry in settings.extra_providers:
            try:
                template = ProviderTemplate.from_dict(entry, settings.default_rate_limits)
            except ConfigurationError as e:
                logger.warning(f"Skipping invalid provider template: {e}")
                continue
            if template.id in known:
                logger.warning(f"Skipping provider template '{template.id}': id already in catalog")
                continue
            known.add(template.id)
            templates.append(template)
            logger.debug(f"Registered extra provider template '{template.id}'")
        return cls(templates)

    def get(self, provider_id: str) -> Optional[ProviderTemplate]:
        return self._templates.get(provider_id)

    def ids(self) -> List[str]:
        return list(self._templates)

    def local_templates(self) -> List[ProviderTemplate]:
        return [template for template in self._templates.values() if template.local]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._templates

    def __iter__(self) -> Iterator[ProviderTemplate]:
        return iter(self._templates.values())

    def __len__(self) -> int:
        return len(self._templates)


__all__ = [
    "AuthScheme",
    "ApiStyle",
    "ProviderTemplate",
    "ProviderCatalog",
    "DEFAULT_TEMPLATES",
]
