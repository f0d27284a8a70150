"""OpenAI LLM provider integration."""

from typing import Any, Dict

from .base import BaseLLMProvider


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions API integration."""

    name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def build_body(self, prompt: str) -> Dict[str, Any]:
        """Chat completion body in JSON mode."""
        body = self._chat_completions_body(prompt)
        body["response_format"] = {"type": "json_object"}
        return body

    def parse_response(self, data: Any) -> str:
        """Extract ``choices[0].message.content``."""
        return self._parse_chat_completion(data)
