"""Hugging Face Inference API (text-generation task) dialect."""

from __future__ import annotations

from typing import Any, Dict, List

from gateway.providers.base import ChatDialect, ChatResult, Message
from modules.error_handler import ResponseFormatError

_ROLE_PREFIXES = {"system": "System", "user": "User", "assistant": "Assistant"}


class HuggingFaceDialect(ChatDialect):
    style = "huggingface"

    def chat_url(self, endpoint: str, model: str) -> str:
        return f"{endpoint.rstrip('/')}/models/{model}"

    def build_request(
        self,
        messages: List[Message],
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        # The text-generation task takes a single prompt string
        lines = [f"{_ROLE_PREFIXES[m['role']]}: {m['content']}" for m in messages]
        lines.append("Assistant:")
        return {
            "inputs": "\n".join(lines),
            "parameters": {
                "max_new_tokens": max_tokens,
                "temperature": max(temperature, 0.01),
                "return_full_text": False,
            },
            "options": {"wait_for_model": True},
        }

    def parse_response(self, data: Any) -> ChatResult:
        item = data[0] if isinstance(data, list) and data else data
        if not isinstance(item, dict) or not isinstance(item.get("generated_text"), str):
            raise ResponseFormatError("Hugging Face response has no generated_text")

        details = item.get("details") if isinstance(item.get("details"), dict) else {}
        counts = self._usage(0, details.get("generated_tokens"))
        return ChatResult(
            content=item["generated_text"].strip(),
            finish_reason=details.get("finish_reason"),
            raw_response={"results": data} if isinstance(data, list) else item,
            **counts,
        )
