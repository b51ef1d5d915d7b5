"""Provider administration: configure, validate, remove and inspect providers.

All writes go through ProviderConfigResolver.persist/clear so the uniform
``{provider_id}.{field}`` key rule is the only storage path. Every operation
returns an Envelope, matching the public gateway contract.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from gateway.catalog import ProviderCatalog
from gateway.config_resolver import ProviderConfigResolver, override_key
from gateway.envelope import Envelope, ErrorKind, error, success
from gateway.rate_limiter import RateLimiter
from gateway.store import ConfigurationStore
from modules.constants import FIELD_CREDENTIAL, PRIMARY_PROVIDER_KEY
from modules.logger import setup_logger
from modules.types import RateLimits, coerce_positive_int

logger = setup_logger(__name__)

SETTING_KEYS = frozenset({
    "credential",
    "endpoint",
    "model",
    "rate_limit_per_minute",
    "rate_limit_per_hour",
})

_SOURCE = "provider_configurator"


def validate_provider_settings(settings: Mapping[str, Any]) -> List[str]:
    """Return a list of problems with a provider settings mapping (empty if valid)."""
    errors: List[str] = []

    unknown = sorted(set(settings) - SETTING_KEYS)
    if unknown:
        errors.append(f"Unknown setting(s): {', '.join(unknown)}")

    endpoint = settings.get("endpoint")
    if endpoint is not None:
        if not isinstance(endpoint, str):
            errors.append("endpoint must be a string")
        else:
            parts = urlsplit(endpoint.strip())
            if parts.scheme not in ("http", "https") or not parts.netloc:
                errors.append(f"endpoint must be an http(s) URL, got {endpoint!r}")

    for key in ("credential", "model"):
        value = settings.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"{key} must be a string")

    for key in ("rate_limit_per_minute", "rate_limit_per_hour"):
        value = settings.get(key)
        if value is not None and coerce_positive_int(value) is None:
            errors.append(f"{key} must be a positive integer")

    return errors


class ProviderConfigurator:
    """Administrative operations over the provider catalog and store."""

    def __init__(
        self,
        catalog: ProviderCatalog,
        store: ConfigurationStore,
        config_resolver: ProviderConfigResolver,
        rate_limiter: RateLimiter,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.config_resolver = config_resolver
        self.rate_limiter = rate_limiter

    @classmethod
    def from_gateway(cls, gateway: Any) -> ProviderConfigurator:
        return cls(gateway.catalog, gateway.store, gateway.config_resolver, gateway.rate_limiter)

    def _unknown(self, provider_id: str, operation: str) -> Envelope:
        return error(
            ErrorKind.CONFIGURATION_MISSING,
            f"Unknown provider '{provider_id}'. Known providers: {', '.join(self.catalog.ids())}",
            provider=provider_id,
            operation=operation,
        )

    def configure(self, provider_id: str, settings: Mapping[str, Any]) -> Envelope:
        """Validate settings, merge them into the current config and persist the result."""
        current = self.config_resolver.resolve(provider_id)
        if current is None:
            return self._unknown(provider_id, "configure")

        problems = validate_provider_settings(settings)
        if problems:
            return error(
                ErrorKind.INVALID_INPUT,
                f"Invalid settings for '{provider_id}': {'; '.join(problems)}",
                provider=provider_id,
                operation="configure",
                errors=problems,
            )

        def text(key: str, fallback: Optional[str]) -> Optional[str]:
            value = settings.get(key)
            return value.strip() if isinstance(value, str) and value.strip() else fallback

        limits = RateLimits(
            per_minute=coerce_positive_int(settings.get("rate_limit_per_minute")) or current.rate_limits.per_minute,
            per_hour=coerce_positive_int(settings.get("rate_limit_per_hour")) or current.rate_limits.per_hour,
        )
        updated = replace(
            current,
            auth_credential=text("credential", current.auth_credential),
            endpoint=(text("endpoint", current.endpoint) or "").rstrip("/"),
            model=text("model", current.model) or current.model,
            rate_limits=limits,
        )

        if not self.config_resolver.persist(provider_id, updated):
            return error(
                ErrorKind.PROCESSING_FAILED,
                f"Settings for '{provider_id}' could not be saved",
                provider=provider_id,
                operation="configure",
            )

        resolved = self.config_resolver.resolve(provider_id)
        logger.info(f"Configured provider '{provider_id}' (configured={resolved.configured})")
        return success(resolved.to_dict(), source=_SOURCE, operation="configure")

    def remove(self, provider_id: str) -> Envelope:
        """Clear every override of provider_id and forget its call history."""
        if provider_id not in self.catalog:
            return self._unknown(provider_id, "remove")

        self.config_resolver.clear(provider_id)
        self.rate_limiter.reset(provider_id)
        primary_cleared = False
        if self.store.get(PRIMARY_PROVIDER_KEY, None) == provider_id:
            self.store.set(PRIMARY_PROVIDER_KEY, None)
            primary_cleared = True
        logger.info(f"Removed configuration for provider '{provider_id}'")
        return success(
            {"provider": provider_id, "removed": True, "primary_cleared": primary_cleared},
            source=_SOURCE,
            operation="remove",
        )

    def set_primary(self, provider_id: str) -> Envelope:
        """Persist provider_id as the primary provider."""
        config = self.config_resolver.resolve(provider_id)
        if config is None:
            return self._unknown(provider_id, "set_primary")

        self.store.set(PRIMARY_PROVIDER_KEY, provider_id)
        if not config.configured:
            logger.warning(f"Primary provider '{provider_id}' is not configured yet; requests will fall back")
        return success(
            {"primary_provider": provider_id, "configured": config.configured},
            source=_SOURCE,
            operation="set_primary",
        )

    def _status(self, provider_id: str) -> Optional[Dict[str, Any]]:
        config = self.config_resolver.resolve(provider_id)
        if config is None:
            return None
        status = config.to_dict()
        status["is_primary"] = self.store.get(PRIMARY_PROVIDER_KEY, None) == provider_id
        status["statistics"] = self.rate_limiter.get_stats(provider_id, config.rate_limits)
        return status

    def status(self, provider_id: str) -> Envelope:
        """Resolved configuration (credential masked) and call statistics."""
        status = self._status(provider_id)
        if status is None:
            return self._unknown(provider_id, "status")
        return success(status, source=_SOURCE, operation="status")

    def list_providers(self) -> Envelope:
        """Status of every catalog provider, in catalog order."""
        providers = [self._status(provider_id) for provider_id in self.catalog.ids()]
        return success(
            {
                "primary_provider": self.store.get(PRIMARY_PROVIDER_KEY, None),
                "providers": providers,
            },
            source=_SOURCE,
            operation="list_providers",
        )

    def seed_credentials_from_env(self, environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """Persist credentials found in environment variables.

        Only templates declaring ``credential_env`` are considered, and a
        credential already in the store is never overwritten.

        Returns:
            Ids of providers whose credential was seeded
        """
        environ = os.environ if environ is None else environ
        seeded: List[str] = []
        for template in self.catalog:
            if not template.credential_env:
                continue
            value = (environ.get(template.credential_env) or "").strip()
            if not value or self.config_resolver.has_override(template.id, FIELD_CREDENTIAL):
                continue
            self.store.set(override_key(template.id, FIELD_CREDENTIAL), value)
            seeded.append(template.id)
            logger.info(f"Seeded credential for '{template.id}' from {template.credential_env}")
        return seeded


__all__ = ["ProviderConfigurator", "validate_provider_settings", "SETTING_KEYS"]
