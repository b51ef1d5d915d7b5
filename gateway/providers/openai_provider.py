"""OpenAI-compatible chat completions dialect.

Used by OpenAI itself and by every provider exposing the same
``/chat/completions`` contract (OpenRouter, Groq, Together, LM Studio,
generic local servers).
"""

from __future__ import annotations

from typing import Any, Dict, List

from gateway.providers.base import ChatDialect, ChatResult, Message
from modules.error_handler import ResponseFormatError


class OpenAIDialect(ChatDialect):
    style = "openai"

    def chat_url(self, endpoint: str, model: str) -> str:
        return f"{endpoint.rstrip('/')}/chat/completions"

    def build_request(
        self,
        messages: List[Message],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    def parse_response(self, data: Any) -> ChatResult:
        payload = self._require_dict(data, self.style)
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ResponseFormatError("OpenAI-style response has no choices")

        first = choices[0]
        message = first.get("message")
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise ResponseFormatError("OpenAI-style response choice has no message content")

        usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
        counts = self._usage(usage.get("prompt_tokens"), usage.get("completion_tokens"), usage.get("total_tokens"))
        return ChatResult(
            content=message["content"],
            finish_reason=first.get("finish_reason"),
            model=payload.get("model"),
            raw_response=payload,
            **counts,
        )
