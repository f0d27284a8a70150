"""Mistral LLM provider integration."""

from typing import Any, Dict

from .base import BaseLLMProvider


class MistralProvider(BaseLLMProvider):
    """Mistral chat completions API integration (OpenAI-compatible envelope)."""

    name = "mistral"
    endpoint = "https://api.mistral.ai/v1/chat/completions"

    def build_body(self, prompt: str) -> Dict[str, Any]:
        body = self._chat_completions_body(prompt)
        body["response_format"] = {"type": "json_object"}
        return body

    def parse_response(self, data: Any) -> str:
        return self._parse_chat_completion(data)
