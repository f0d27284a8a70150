"""LLM provider integrations."""

from .anthropic_provider import AnthropicProvider
from .base import (
    BaseLLMProvider,
    LLMProviderError,
    ProviderRequest,
    ProviderResponse,
    ResponseFormatError,
)
from .google_provider import GoogleProvider
from .groq_provider import GroqProvider
from .mistral_provider import MistralProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "GoogleProvider",
    "GroqProvider",
    "LLMProviderError",
    "MistralProvider",
    "OpenAIProvider",
    "ProviderRequest",
    "ProviderResponse",
    "ResponseFormatError",
]
