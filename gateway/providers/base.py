"""Base dialect abstraction for provider APIs.

A dialect knows how one family of provider APIs expects a chat request to be
shaped and how its response looks. Dialects are stateless: the effective
endpoint, credential and model always come from the resolved ProviderConfig.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from gateway.config_resolver import ProviderConfig
from modules.error_handler import ResponseFormatError

Message = Dict[str, str]


@dataclass
class ChatResult:
    """Normalized chat completion shared by all dialects.

    Attributes:
        content: Generated text
        finish_reason: Provider stop reason, if reported
        prompt_tokens: Input tokens used
        completion_tokens: Output tokens generated
        total_tokens: Total tokens used
        model: Model that produced the answer
        provider: Provider id that served the request
        raw_response: Decoded provider payload
    """

    content: str
    finish_reason: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model: Optional[str] = None
    provider: Optional[str] = None
    raw_response: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "finish_reason": self.finish_reason,
            "usage": {
                "prompt_tokens": self.prompt_tokens,
                "completion_tokens": self.completion_tokens,
                "total_tokens": self.total_tokens,
            },
            "model": self.model,
            "provider": self.provider,
            "raw_response": self.raw_response,
        }


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class ChatDialect(ABC):
    """Request/response translation for one API style."""

    #: API style handled by the dialect
    style: str = ""

    @abstractmethod
    def chat_url(self, endpoint: str, model: str) -> str:
        """Return the chat URL for an endpoint base and model."""

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(config.auth_headers())
        return headers

    @abstractmethod
    def build_request(
        self,
        messages: List[Message],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        """Build the provider-native request body."""

    @abstractmethod
    def parse_response(self, data: Any) -> ChatResult:
        """Normalize a decoded provider response.

        Raises:
            ResponseFormatError: If the payload lacks the expected structure
        """

    @staticmethod
    def _require_dict(data: Any, style: str) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ResponseFormatError(f"{style} response must be a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _usage(prompt: Any, completion: Any, total: Any = None) -> Dict[str, int]:
        prompt_tokens = _as_int(prompt)
        completion_tokens = _as_int(completion)
        total_tokens = _as_int(total) or prompt_tokens + completion_tokens
        return {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": total_tokens,
        }


__all__ = ["ChatDialect", "ChatResult", "Message"]
