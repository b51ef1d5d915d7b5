"""Provider configuration resolution.

ProviderConfigResolver merges a catalog template with the overrides persisted
in the ConfigurationStore. Every override lives under exactly one key,
``{provider_id}.{field}``, whether the provider came from the built-in
catalog, from providers.yaml, or was auto-registered after a local probe.

Resolution is a pure read: nothing is cached and nothing is written. The only
write path is ``persist`` (and its counterpart ``clear``).

Usage:
    >>> resolver = ProviderConfigResolver(ProviderCatalog.default(), InMemoryConfigurationStore())
    >>> config = resolver.resolve("openai")
    >>> config.configured
    False
    >>> resolver.resolve("does-not-exist") is None
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from gateway.catalog import ApiStyle, AuthScheme, ProviderCatalog, ProviderTemplate
from gateway.store import ConfigurationStore
from modules.constants import (
    CREDENTIAL_MASK_VISIBLE_CHARS,
    FIELD_CREDENTIAL,
    FIELD_ENDPOINT,
    FIELD_MODEL,
    FIELD_RATE_LIMIT_PER_HOUR,
    FIELD_RATE_LIMIT_PER_MINUTE,
    OVERRIDE_FIELDS,
)
from modules.logger import setup_logger
from modules.types import RateLimits, coerce_positive_int

logger = setup_logger(__name__)


def override_key(provider_id: str, field_name: str) -> str:
    """Return the store key for one override field of a provider."""
    if field_name not in OVERRIDE_FIELDS:
        raise ValueError(f"Unknown provider override field: {field_name!r}")
    return f"{provider_id}.{field_name}"


def mask_credential(credential: Optional[str]) -> Optional[str]:
    """Mask all but the last few characters of a credential for display."""
    if not credential:
        return None
    visible = credential[-CREDENTIAL_MASK_VISIBLE_CHARS:] if len(credential) > 8 else ""
    return f"***{visible}"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ProviderConfig:
    """Effective configuration of one provider for the current request.

    ``configured`` is False when a required credential is missing, when no
    endpoint is available, or, for local keyless providers, when no endpoint has
    been persisted yet. Unconfigured providers must not be called.
    """
    provider_id: str
    endpoint: str
    auth_credential: Optional[str]
    model: str
    rate_limits: RateLimits
    requires_credential: bool
    configured: bool
    auth_scheme: AuthScheme = AuthScheme.NONE
    auth_header: str = "x-api-key"
    api_style: ApiStyle = ApiStyle.OPENAI
    display_name: str = ""
    local: bool = False
    capabilities: frozenset = field(default_factory=frozenset)

    def auth_headers(self) -> Dict[str, str]:
        """HTTP headers that carry this provider's credential."""
        if not self.auth_credential or self.auth_scheme is AuthScheme.NONE:
            return {}
        if self.auth_scheme is AuthScheme.BEARER:
            return {"Authorization": f"Bearer {self.auth_credential}"}
        return {self.auth_header: self.auth_credential}

    def to_dict(self, reveal_credential: bool = False) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "display_name": self.display_name or self.provider_id,
            "endpoint": self.endpoint,
            "credential": self.auth_credential if reveal_credential else mask_credential(self.auth_credential),
            "model": self.model,
            "rate_limits": self.rate_limits.to_dict(),
            "requires_credential": self.requires_credential,
            "configured": self.configured,
            "auth_scheme": self.auth_scheme.value,
            "api_style": self.api_style.value,
            "local": self.local,
            "capabilities": sorted(self.capabilities),
        }


class ProviderConfigResolver:
    """Merge catalog templates with persisted overrides."""

    def __init__(self, catalog: ProviderCatalog, store: ConfigurationStore) -> None:
        self.catalog = catalog
        self.store = store

    def _read(self, provider_id: str, field_name: str) -> Any:
        return self.store.get(override_key(provider_id, field_name), None)

    def _rate_limit(self, provider_id: str, field_name: str, default: int) -> int:
        raw = self._read(provider_id, field_name)
        if raw is None or raw == "":
            return default
        parsed = coerce_positive_int(raw)
        if parsed is None:
            logger.warning(
                f"Ignoring invalid {override_key(provider_id, field_name)}={raw!r}; using default {default}"
            )
            return default
        return parsed

    def resolve(self, provider_id: str) -> Optional[ProviderConfig]:
        """Resolve the effective configuration of provider_id.

        Args:
            provider_id: Catalog id of the provider

        Returns:
            The merged ProviderConfig, or None when the id is not in the catalog
        """
        template = self.catalog.get(provider_id)
        if template is None:
            return None
        return self._merge(template)

    def _merge(self, template: ProviderTemplate) -> ProviderConfig:
        pid = template.id
        credential = _text(self._read(pid, FIELD_CREDENTIAL))
        endpoint_override = _text(self._read(pid, FIELD_ENDPOINT))
        model = _text(self._read(pid, FIELD_MODEL)) or template.default_model
        endpoint = (endpoint_override or template.base_endpoint or "").rstrip("/")

        rate_limits = RateLimits(
            per_minute=self._rate_limit(pid, FIELD_RATE_LIMIT_PER_MINUTE, template.default_rate_limits.per_minute),
            per_hour=self._rate_limit(pid, FIELD_RATE_LIMIT_PER_HOUR, template.default_rate_limits.per_hour),
        )

        requires_credential = template.requires_credential
        if requires_credential:
            configured = bool(credential) and bool(endpoint)
        elif template.local:
            # Local servers count only once an endpoint has been persisted
            configured = bool(endpoint_override)
        else:
            configured = bool(endpoint)

        return ProviderConfig(
            provider_id=pid,
            endpoint=endpoint,
            auth_credential=credential,
            model=model,
            rate_limits=rate_limits,
            requires_credential=requires_credential,
            configured=configured,
            auth_scheme=template.auth_scheme,
            auth_header=template.auth_header,
            api_style=template.api_style,
            display_name=template.display_name,
            local=template.local,
            capabilities=template.capabilities,
        )

    def is_configured(self, provider_id: Optional[str]) -> bool:
        if not provider_id:
            return False
        config = self.resolve(provider_id)
        return config is not None and config.configured

    def has_override(self, provider_id: str, field_name: str) -> bool:
        return _text(self._read(provider_id, field_name)) is not None

    def persist(self, provider_id: str, config: ProviderConfig) -> bool:
        """Write every override field of config under the uniform keys.

        Returns:
            False for unknown providers or when the store rejects a write
        """
        if provider_id not in self.catalog:
            logger.warning(f"Refusing to persist configuration for unknown provider '{provider_id}'")
            return False

        values = {
            FIELD_CREDENTIAL: config.auth_credential or None,
            FIELD_ENDPOINT: config.endpoint or None,
            FIELD_MODEL: config.model or None,
            FIELD_RATE_LIMIT_PER_MINUTE: config.rate_limits.per_minute,
            FIELD_RATE_LIMIT_PER_HOUR: config.rate_limits.per_hour,
        }
        ok = True
        for field_name, value in values.items():
            ok = self.store.set(override_key(provider_id, field_name), value) and ok
        logger.info(f"Persisted configuration for provider '{provider_id}'")
        return ok

    def clear(self, provider_id: str) -> bool:
        """Remove every persisted override of provider_id."""
        ok = True
        for field_name in OVERRIDE_FIELDS:
            ok = self.store.set(override_key(provider_id, field_name), None) and ok
        return ok


__all__ = [
    "ProviderConfig",
    "ProviderConfigResolver",
    "override_key",
    "mask_credential",
]
