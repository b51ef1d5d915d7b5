"""Tests for gateway/resolver.py - Fallback chain and local probing."""

from __future__ import annotations

import socket
from unittest.mock import MagicMock, patch

import pytest

from gateway.catalog import AuthScheme, ProviderCatalog, ProviderTemplate
from gateway.resolver import ProviderResolver, tcp_probe


def _probe_reachable(*urls):
    calls = []

    def probe(url, timeout):
        calls.append(url)
        return url in urls

    probe.calls = calls
    return probe


@pytest.fixture
def make_resolver(greek_catalog, store, config_resolver, unreachable_probe):
    def factory(probe=None, default_primary=None):
        return ProviderResolver(
            greek_catalog,
            store,
            config_resolver=config_resolver,
            probe=probe or unreachable_probe,
            default_primary=default_primary,
        )

    return factory


# ============================================================================
# Fallback Chain
# ============================================================================
class TestChoose:
    """Tests for ProviderResolver.choose."""

    def test_explicit_hint_wins(self, make_resolver, store):
        """A configured hint is used even when a primary exists."""
        store.set("beta.credential", "b")
        store.set("gamma.credential", "g")
        store.set("gateway.primaryProvider", "beta")

        assert make_resolver().choose("gamma") == "gamma"

    def test_primary_used_without_hint(self, make_resolver, store):
        """The configured primary is used when no hint is given."""
        store.set("beta.credential", "b")
        store.set("gamma.credential", "g")
        store.set("gateway.primaryProvider", "gamma")

        assert make_resolver().choose() == "gamma"

    def test_unconfigured_hint_falls_back(self, make_resolver, store):
        """An unconfigured hint is superseded without error."""
        store.set("gamma.credential", "g")

        assert make_resolver().choose("beta") == "gamma"

    def test_unknown_hint_falls_back(self, make_resolver, store):
        """A hint naming no catalog provider is superseded."""
        store.set("beta.credential", "b")

        assert make_resolver().choose("delta") == "beta"

    def test_unconfigured_primary_falls_back_to_first_configured(self, make_resolver, store):
        """Primary beta without a credential falls through to gamma."""
        store.set("gateway.primaryProvider", "beta")
        store.set("gamma.credential", "g")

        assert make_resolver().choose() == "gamma"

    def test_first_configured_in_catalog_order(self, make_resolver, store):
        """The first configured provider in catalog order wins."""
        store.set("gamma.credential", "g")
        store.set("beta.credential", "b")

        assert make_resolver().choose() == "beta"

    def test_default_primary_from_settings(self, make_resolver, store):
        """The settings primary applies when the store has none."""
        store.set("beta.credential", "b")
        store.set("gamma.credential", "g")

        assert make_resolver(default_primary="gamma").choose() == "gamma"

    def test_store_primary_beats_default(self, make_resolver, store):
        """A stored primary overrides the settings default."""
        store.set("beta.credential", "b")
        store.set("gamma.credential", "g")
        store.set("gateway.primaryProvider", "beta")

        assert make_resolver(default_primary="gamma").choose() == "beta"

    def test_never_picks_unconfigured_keyed_provider(self, make_resolver, probe_calls):
        """Keyed providers without credentials are never chosen."""
        resolver = make_resolver()

        assert resolver.choose() is None
        assert resolver.choose("beta") is None
        assert probe_calls == ["http://localhost:9001", "http://localhost:9001"]

    def test_probe_not_used_when_something_configured(self, make_resolver, store, probe_calls):
        """Probing only happens when nothing is configured."""
        store.set("gamma.credential", "g")

        make_resolver().choose()

        assert probe_calls == []

    def test_keyless_remote_hint_is_chosen(self, store, unreachable_probe):
        """A keyless remote provider needs no stored settings to be chosen."""
        catalog = ProviderCatalog([
            ProviderTemplate(
                id="selfhosted",
                display_name="Self-hosted",
                base_endpoint="https://llm.internal.example/v1",
                auth_scheme=AuthScheme.NONE,
                default_model="m",
            )
        ])
        resolver = ProviderResolver(catalog, store, probe=unreachable_probe)

        assert resolver.choose("selfhosted") == "selfhosted"
        assert resolver.choose() == "selfhosted"
        assert store.snapshot() == {}


# ============================================================================
# Local Probe and Auto-Registration
# ============================================================================
class TestLocalProbe:
    """Tests for local probing and auto-registration."""

    def test_reachable_local_provider_is_auto_registered(self, make_resolver, store):
        """A reachable keyless provider is persisted and chosen."""
        probe = _probe_reachable("http://localhost:9001")

        assert make_resolver(probe=probe).choose() == "alpha"
        assert store.get("alpha.endpoint") == "http://localhost:9001"

    def test_auto_registered_provider_is_configured_next_time(self, make_resolver, store, config_resolver):
        """After auto-registration the provider resolves as configured."""
        make_resolver(probe=_probe_reachable("http://localhost:9001")).choose()

        assert config_resolver.is_configured("alpha") is True
        probe = _probe_reachable()
        assert make_resolver(probe=probe).choose() == "alpha"
        assert probe.calls == []

    def test_probe_uses_resolved_endpoint(self, make_resolver, store):
        """The resolved endpoint is probed when no override exists."""
        store.set("alpha.model", "alpha-tiny")
        probe = _probe_reachable()

        make_resolver(probe=probe).choose()

        assert probe.calls == ["http://localhost:9001"]

    def test_unreachable_returns_none(self, make_resolver, store):
        """Nothing configured and nothing reachable gives None."""
        assert make_resolver().choose() is None
        assert store.snapshot() == {}

    def test_probe_exception_treated_as_unreachable(self, make_resolver):
        """A probe that raises counts as unreachable."""
        probe = MagicMock(side_effect=RuntimeError("socket layer bug"))

        with patch("modules.error_handler.logger") as mock_logger:
            assert make_resolver(probe=probe).choose() is None

        probe.assert_called_once_with("http://localhost:9001", 0.5)
        assert "local provider 'alpha'" in mock_logger.warning.call_args[0][0]


class TestPrimaryProvider:
    """Tests for primary_provider."""

    def test_blank_primary_is_none(self, make_resolver, store):
        """Whitespace primaries are ignored."""
        store.set("gateway.primaryProvider", "  ")
        assert make_resolver().primary_provider() is None


# ============================================================================
# TCP Probe
# ============================================================================
class TestTcpProbe:
    """Tests for tcp_probe."""

    def test_success(self):
        """A successful connection returns True."""
        with patch("gateway.resolver.socket.create_connection") as mock_connect:
            assert tcp_probe("http://localhost:11434", timeout=0.2) is True
        mock_connect.assert_called_once_with(("localhost", 11434), timeout=0.2)

    def test_default_ports(self):
        """Scheme default ports are used when none is given."""
        with patch("gateway.resolver.socket.create_connection") as mock_connect:
            tcp_probe("https://example.com/v1")
        assert mock_connect.call_args[0][0] == ("example.com", 443)

    def test_connection_refused(self):
        """OSError returns False."""
        with patch("gateway.resolver.socket.create_connection", side_effect=ConnectionRefusedError()):
            assert tcp_probe("http://localhost:1") is False

    def test_timeout(self):
        """Socket timeouts return False."""
        with patch("gateway.resolver.socket.create_connection", side_effect=socket.timeout()):
            assert tcp_probe("http://localhost:1") is False

    def test_invalid_url(self):
        """URLs without a host return False without connecting."""
        with patch("gateway.resolver.socket.create_connection") as mock_connect:
            assert tcp_probe("not a url") is False
        mock_connect.assert_not_called()
