"""Groq LLM provider integration.

Groq serves open models (Llama, Mixtral, Gemma) behind an OpenAI-compatible
chat completions endpoint.
"""

from typing import Any, Dict

from .base import BaseLLMProvider


class GroqProvider(BaseLLMProvider):
    """Groq chat completions API integration."""

    name = "groq"
    endpoint = "https://api.groq.com/openai/v1/chat/completions"

    def build_body(self, prompt: str) -> Dict[str, Any]:
        return self._chat_completions_body(prompt)

    def parse_response(self, data: Any) -> str:
        return self._parse_chat_completion(data)
