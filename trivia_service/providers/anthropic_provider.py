"""Anthropic (Claude) LLM provider integration."""

from typing import Any, Dict

from ..prompts import SYSTEM_PROMPT
from .base import BaseLLMProvider, truncate_for_log

ANTHROPIC_API_VERSION = "2023-06-01"


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Messages API integration."""

    name = "anthropic"
    endpoint = "https://api.anthropic.com/v1/messages"

    def get_headers(self) -> Dict[str, str]:
        """Anthropic authenticates with ``x-api-key`` plus an API version header."""
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    def build_body(self, prompt: str) -> Dict[str, Any]:
        """Messages API body; the system prompt is a top-level field."""
        return {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def sanitize_body(self, body: Dict[str, Any]) -> Dict[str, Any]:
        sanitized = super().sanitize_body(body)
        if "system" in sanitized:
            sanitized["system"] = truncate_for_log(sanitized["system"])
        return sanitized

    def parse_response(self, data: Any) -> str:
        """Extract the first text block from ``content``."""
        try:
            blocks = data["content"]
        except (KeyError, TypeError) as e:
            raise self._format_error("missing content") from e
        if not isinstance(blocks, list):
            raise self._format_error("content is not a list")

        for block in blocks:
            if isinstance(block, dict) and block.get("type", "text") == "text":
                text = block.get("text")
                if isinstance(text, str) and text.strip():
                    return text
        raise self._format_error("no text block in content")
