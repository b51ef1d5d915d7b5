"""Provider selection through the fallback chain.

ProviderResolver.choose() picks the provider that should serve a request.
The steps run in order and the first success wins:

1. Explicit: the caller's hint, if it names a configured provider.
2. Primary: the ``gateway.primaryProvider`` setting, if configured.
3. Any configured: the first configured provider in catalog order.
4. Local probe: a short TCP connect to each local provider's endpoint.
5. Auto-register: persist the reachable endpoint under ``{id}.endpoint``,
   re-resolve, and return the provider if it is now configured.
6. None: nothing is usable; callers report ProviderUnavailable.

An unconfigured hint or primary is superseded silently (logged at warning
level) rather than treated as an error.
"""

from __future__ import annotations

import socket
from typing import Callable, Optional
from urllib.parse import urlsplit

from gateway.catalog import ProviderCatalog
from gateway.config_resolver import ProviderConfigResolver, override_key
from gateway.store import ConfigurationStore
from modules.constants import DEFAULT_PROBE_TIMEOUT, FIELD_ENDPOINT, PRIMARY_PROVIDER_KEY
from modules.error_handler import safe_execute
from modules.logger import setup_logger

logger = setup_logger(__name__)

ProbeFunc = Callable[[str, float], bool]


def tcp_probe(url: str, timeout: float = DEFAULT_PROBE_TIMEOUT) -> bool:
    """Return True if a TCP connection to url's host and port succeeds within timeout."""
    try:
        parts = urlsplit(url)
        host = parts.hostname
        port = parts.port or (443 if parts.scheme == "https" else 80)
    except ValueError:
        return False
    if not host:
        return False

    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.debug(f"Probe of {host}:{port} failed: {e}")
        return False


class ProviderResolver:
    """Choose a concrete provider id for a request.

    Args:
        catalog: Provider catalog (defines fallback order)
        store: Configuration store holding overrides and the primary setting
        config_resolver: Resolver used to decide whether providers are configured
        probe: Connectivity check ``(url, timeout) -> bool``; must not raise
        probe_timeout: Timeout passed to the probe in seconds
        default_primary: Primary provider used when the store has none
    """

    def __init__(
        self,
        catalog: ProviderCatalog,
        store: ConfigurationStore,
        config_resolver: Optional[ProviderConfigResolver] = None,
        probe: ProbeFunc = tcp_probe,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        default_primary: Optional[str] = None,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.config_resolver = config_resolver or ProviderConfigResolver(catalog, store)
        self.probe = probe
        self.probe_timeout = probe_timeout
        self.default_primary = default_primary

    def primary_provider(self) -> Optional[str]:
        value = self.store.get(PRIMARY_PROVIDER_KEY, None) or self.default_primary
        if not value:
            return None
        return str(value).strip() or None

    def choose(self, explicit_hint: Optional[str] = None) -> Optional[str]:
        """Run the fallback chain and return a provider id, or None."""
        if explicit_hint:
            if self.config_resolver.is_configured(explicit_hint):
                logger.debug(f"Using explicitly requested provider '{explicit_hint}'")
                return explicit_hint
            logger.warning(f"Requested provider '{explicit_hint}' is not configured; falling back")

        primary = self.primary_provider()
        if primary and primary != explicit_hint:
            if self.config_resolver.is_configured(primary):
                logger.debug(f"Using primary provider '{primary}'")
                return primary
            logger.warning(f"Primary provider '{primary}' is not configured; falling back")

        for provider_id in self.catalog.ids():
            if self.config_resolver.is_configured(provider_id):
                logger.debug(f"Using first configured provider '{provider_id}'")
                return provider_id

        return self._probe_local_providers()

    def _probe_local_providers(self) -> Optional[str]:
        for template in self.catalog.local_templates():
            config = self.config_resolver.resolve(template.id)
            endpoint = config.endpoint if config is not None else template.base_endpoint
            if not endpoint:
                continue

            logger.debug(f"Probing local provider '{template.id}' at {endpoint}")
            reachable = safe_execute(
                self.probe,
                endpoint,
                self.probe_timeout,
                default=False,
                context=f"probe of local provider '{template.id}'",
            )
            if not reachable:
                continue

            if not self.config_resolver.has_override(template.id, FIELD_ENDPOINT):
                logger.info(f"Auto-registering local provider '{template.id}' at {endpoint}")
                self.store.set(override_key(template.id, FIELD_ENDPOINT), endpoint)

            if self.config_resolver.is_configured(template.id):
                return template.id
            logger.debug(f"Local provider '{template.id}' is reachable but still not configured")

        logger.debug("No configured or reachable provider found")
        return None


__all__ = ["ProviderResolver", "tcp_probe", "ProbeFunc"]
