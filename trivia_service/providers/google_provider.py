"""Google (Gemini) LLM provider integration."""

from typing import Any, Dict

from ..prompts import SYSTEM_PROMPT
from .base import BaseLLMProvider, truncate_for_log

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


def _sanitize_content(content: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = dict(content)
    parts = sanitized.get("parts")
    if isinstance(parts, list):
        sanitized["parts"] = [
            {**part, "text": truncate_for_log(part.get("text"))}
            if isinstance(part, dict)
            else part
            for part in parts
        ]
    return sanitized


class GoogleProvider(BaseLLMProvider):
    """Google Gemini ``generateContent`` API integration."""

    name = "google"

    def get_endpoint(self) -> str:
        """Gemini puts the model in the URL path."""
        return f"{GOOGLE_API_BASE}/{self.model}:generateContent"

    def get_headers(self) -> Dict[str, str]:
        """Gemini takes the key in ``x-goog-api-key`` rather than the query string."""
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def build_body(self, prompt: str) -> Dict[str, Any]:
        """generateContent body with JSON output requested."""
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
                "responseMimeType": "application/json",
            },
        }

    def sanitize_body(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Truncate the text parts of ``contents`` and ``systemInstruction``."""
        sanitized = dict(body)
        contents = sanitized.get("contents")
        if isinstance(contents, list):
            sanitized["contents"] = [
                _sanitize_content(content)
                for content in contents
                if isinstance(content, dict)
            ]
        instruction = sanitized.get("systemInstruction")
        if isinstance(instruction, dict):
            sanitized["systemInstruction"] = _sanitize_content(instruction)
        return sanitized

    def parse_response(self, data: Any) -> str:
        """Extract ``candidates[0].content.parts[0].text``."""
        try:
            candidate = data["candidates"][0]
        except (KeyError, IndexError, TypeError) as e:
            # A blocked prompt comes back without candidates
            block_reason = None
            if isinstance(data, dict):
                block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            detail = "missing candidates"
            if block_reason:
                detail = f"{detail} (blockReason={block_reason})"
            raise self._format_error(detail) from e

        try:
            text = candidate["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            finish_reason = (
                candidate.get("finishReason") if isinstance(candidate, dict) else None
            )
            raise self._format_error(
                f"missing content.parts[0].text (finishReason={finish_reason})"
            ) from e
        if not isinstance(text, str) or not text.strip():
            raise self._format_error("empty text part")
        return text
