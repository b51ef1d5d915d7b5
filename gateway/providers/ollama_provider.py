"""Ollama native chat API dialect."""

from __future__ import annotations

from typing import Any, Dict, List

from gateway.providers.base import ChatDialect, ChatResult, Message
from modules.error_handler import ResponseFormatError


class OllamaDialect(ChatDialect):
    style = "ollama"

    def chat_url(self, endpoint: str, model: str) -> str:
        return f"{endpoint.rstrip('/')}/api/chat"

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
            "stream": False,
            "options": {"num_predict": max_tokens, "temperature": temperature},
        }

    def parse_response(self, data: Any) -> ChatResult:
        payload = self._require_dict(data, self.style)
        message = payload.get("message")
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise ResponseFormatError("Ollama response has no message content")

        counts = self._usage(payload.get("prompt_eval_count"), payload.get("eval_count"))
        return ChatResult(
            content=message["content"],
            finish_reason=payload.get("done_reason") or ("stop" if payload.get("done") else None),
            model=payload.get("model"),
            raw_response=payload,
            **counts,
        )
