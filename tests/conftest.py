"""Pytest fixtures and configuration for gateway tests.

This module provides shared fakes (clock, sleep, transport, probe), an
in-memory store and small test catalogs used across the test suite. No test
touches the network.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Mapping, Optional, Union
from unittest.mock import patch

import pytest

from gateway.ai_gateway import AIGateway, build_gateway
from gateway.catalog import ApiStyle, AuthScheme, ProviderCatalog, ProviderTemplate
from gateway.config_resolver import ProviderConfigResolver
from gateway.store import InMemoryConfigurationStore
from gateway.transport import HttpResponse
from modules.error_handler import TransportError
from modules.types import GatewaySettings, RateLimits


# ============================================================================
# Fakes
# ============================================================================
class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records requested delays and advances a clock."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.calls: List[float] = []
        self.clock = clock

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


ScriptItem = Union[HttpResponse, Exception]


class ScriptedTransport:
    """Transport returning (or raising) scripted items in order.

    The last item repeats once the script is exhausted.
    """

    def __init__(self, *items: ScriptItem) -> None:
        self.items = list(items)
        self.requests: List[Dict[str, Any]] = []

    def post(self, url: str, headers: Mapping[str, str], json_body: Any, timeout: float) -> HttpResponse:
        self.requests.append({"url": url, "headers": dict(headers), "json": json_body, "timeout": timeout})
        index = min(len(self.requests) - 1, len(self.items) - 1)
        item = self.items[index]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def call_count(self) -> int:
        return len(self.requests)


def json_response(status: int, body: Any = None, headers: Optional[Dict[str, str]] = None) -> HttpResponse:
    """Build an HttpResponse with a JSON body."""
    text = "" if body is None else json.dumps(body)
    return HttpResponse(status_code=status, headers=headers or {}, text=text)


def openai_completion(content: str = "Hello there", model: str = "gpt-4o-mini") -> Dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "model": model,
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8},
    }


# ============================================================================
# Path Fixtures
# ============================================================================
@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).resolve().parents[1]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# Core Fixtures
# ============================================================================
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def store() -> InMemoryConfigurationStore:
    return InMemoryConfigurationStore()


@pytest.fixture
def settings() -> GatewaySettings:
    """Gateway settings with small, test-friendly backoff values."""
    return GatewaySettings(
        request_timeout=5.0,
        max_retries=3,
        connection_backoff_base=0.5,
        connection_backoff_cap=2.0,
    )


@pytest.fixture
def default_catalog() -> ProviderCatalog:
    return ProviderCatalog.default()


@pytest.fixture
def greek_catalog() -> ProviderCatalog:
    """Catalog with a keyless local provider (alpha) and two keyed providers."""
    return ProviderCatalog(
        [
            ProviderTemplate(
                id="alpha",
                display_name="Alpha (local)",
                base_endpoint="http://localhost:9001",
                auth_scheme=AuthScheme.NONE,
                default_model="alpha-small",
                capabilities=frozenset({"chat", "local"}),
                local=True,
            ),
            ProviderTemplate(
                id="beta",
                display_name="Beta",
                base_endpoint="https://beta.example.com/v1",
                auth_scheme=AuthScheme.BEARER,
                default_model="beta-large",
                default_rate_limits=RateLimits(10, 100),
            ),
            ProviderTemplate(
                id="gamma",
                display_name="Gamma",
                base_endpoint="https://gamma.example.com",
                auth_scheme=AuthScheme.API_KEY_HEADER,
                default_model="gamma-1",
                api_style=ApiStyle.ANTHROPIC,
            ),
        ]
    )


@pytest.fixture
def probe_calls() -> List[str]:
    return []


@pytest.fixture
def unreachable_probe(probe_calls: List[str]) -> Callable[[str, float], bool]:
    def probe(url: str, timeout: float) -> bool:
        probe_calls.append(url)
        return False

    return probe


@pytest.fixture
def make_gateway(
    settings: GatewaySettings,
    store: InMemoryConfigurationStore,
    clock: FakeClock,
    sleep: RecordingSleep,
    unreachable_probe: Callable[[str, float], bool],
) -> Callable[..., AIGateway]:
    """Factory building a fully wired gateway around fakes."""

    def factory(
        transport: ScriptedTransport,
        catalog: Optional[ProviderCatalog] = None,
        probe: Optional[Callable[[str, float], bool]] = None,
    ) -> AIGateway:
        return build_gateway(
            settings=settings,
            store=store,
            catalog=catalog or ProviderCatalog.default(),
            transport=transport,
            probe=probe or unreachable_probe,
            sleep=sleep,
            clock=clock,
            monotonic=clock,
        )

    return factory


@pytest.fixture
def config_resolver(greek_catalog: ProviderCatalog, store: InMemoryConfigurationStore) -> ProviderConfigResolver:
    return ProviderConfigResolver(greek_catalog, store)


# ============================================================================
# Environment Fixtures
# ============================================================================
@pytest.fixture
def mock_api_keys():
    """Set up mock API keys for testing."""
    with patch.dict(os.environ, {
        "OPENAI_API_KEY": "sk-test-openai-key-123456",
        "ANTHROPIC_API_KEY": "test-anthropic-key",
    }):
        yield


@pytest.fixture
def connection_refused() -> TransportError:
    return TransportError("Could not connect to http://localhost:9: Connection refused")
