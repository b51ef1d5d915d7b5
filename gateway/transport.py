"""HTTP transport used by CallExecutor.

The executor only needs ``post(url, headers, json_body, timeout)`` returning
status, headers and body text; anything that prevents a response from being
received is reported as TransportError. RequestsTransport implements this on
top of a shared ``requests.Session``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import requests

from modules.error_handler import TransportError
from modules.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """Received HTTP response; header names are stored lower-cased."""
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "headers", {str(k).lower(): str(v) for k, v in dict(self.headers).items()}
        )

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def json(self) -> Any:
        """Decode the body as JSON (raises ValueError on malformed bodies)."""
        return json.loads(self.text) if self.text else None


class HttpTransport(Protocol):
    def post(
        self,
        url: str,
        headers: Mapping[str, str],
        json_body: Any,
        timeout: float,
    ) -> HttpResponse:
        ...


class RequestsTransport:
    """HttpTransport backed by requests."""

    def __init__(self, session: Optional[requests.Session] = None, user_agent: str = "ai-provider-gateway") -> None:
        self.session = session or requests.Session()
        self.user_agent = user_agent

    def post(
        self,
        url: str,
        headers: Mapping[str, str],
        json_body: Any,
        timeout: float,
    ) -> HttpResponse:
        request_headers: Dict[str, str] = {"User-Agent": self.user_agent}
        request_headers.update(headers)
        try:
            response = self.session.post(url, headers=request_headers, json=json_body, timeout=timeout)
        except requests.Timeout as e:
            raise TransportError(f"Request to {url} timed out after {timeout:.1f}s") from e
        except requests.ConnectionError as e:
            raise TransportError(f"Could not connect to {url}: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )

    def close(self) -> None:
        self.session.close()


__all__ = ["HttpResponse", "HttpTransport", "RequestsTransport"]
