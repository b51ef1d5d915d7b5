"""Anthropic Messages API dialect."""

from __future__ import annotations

from typing import Any, Dict, List

from gateway.config_resolver import ProviderConfig
from gateway.providers.base import ChatDialect, ChatResult, Message
from modules.constants import ANTHROPIC_API_VERSION
from modules.error_handler import ResponseFormatError


class AnthropicDialect(ChatDialect):
    """Messages API: system prompts travel in a top-level ``system`` field."""

    style = "anthropic"

    def chat_url(self, endpoint: str, model: str) -> str:
        base = endpoint.rstrip("/")
        if base.endswith("/v1"):
            return f"{base}/messages"
        return f"{base}/v1/messages"

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        headers = super().build_headers(config)
        headers["anthropic-version"] = ANTHROPIC_API_VERSION
        return headers

    def build_request(
        self,
        messages: List[Message],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        body: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": m["role"], "content": m["content"]}
                for m in messages
                if m["role"] != "system"
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        return body

    def parse_response(self, data: Any) -> ChatResult:
        payload = self._require_dict(data, self.style)
        blocks = payload.get("content")
        if not isinstance(blocks, list):
            raise ResponseFormatError("Anthropic response has no content blocks")

        texts = [
            block["text"]
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        if not texts:
            raise ResponseFormatError("Anthropic response contains no text block")

        usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
        counts = self._usage(usage.get("input_tokens"), usage.get("output_tokens"))
        return ChatResult(
            content="".join(texts),
            finish_reason=payload.get("stop_reason"),
            model=payload.get("model"),
            raw_response=payload,
            **counts,
        )
