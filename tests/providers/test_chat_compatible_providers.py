"""Tests for the OpenAI-compatible Mistral and Groq providers."""

import pytest

from trivia_service.providers import (
    GroqProvider,
    MistralProvider,
    ResponseFormatError,
)


class TestMistralProvider:
    """Test suite for MistralProvider."""

    def test_build_request(self, mock_api_key, sample_prompt):
        provider = MistralProvider(api_key=mock_api_key, model="mistral-small-latest")

        request = provider.build_request(sample_prompt)

        assert provider.get_provider_name() == "mistral"
        assert request.url == "https://api.mistral.ai/v1/chat/completions"
        assert request.headers["Authorization"] == f"Bearer {mock_api_key}"
        assert request.body["model"] == "mistral-small-latest"
        assert request.body["response_format"] == {"type": "json_object"}

    def test_parse_response(self, mock_api_key, make_chat_completion):
        provider = MistralProvider(api_key=mock_api_key, model="mistral-small-latest")

        assert provider.parse_response(make_chat_completion("{}")) == "{}"


class TestGroqProvider:
    """Test suite for GroqProvider."""

    def test_build_request(self, mock_api_key, sample_prompt):
        provider = GroqProvider(api_key=mock_api_key, model="llama-3.1-8b-instant")

        request = provider.build_request(sample_prompt)

        assert provider.get_provider_name() == "groq"
        assert request.url == "https://api.groq.com/openai/v1/chat/completions"
        assert request.headers["Authorization"] == f"Bearer {mock_api_key}"
        assert request.body["messages"][-1] == {"role": "user", "content": sample_prompt}
        assert "response_format" not in request.body

    def test_parse_response_invalid(self, mock_api_key):
        provider = GroqProvider(api_key=mock_api_key, model="llama-3.1-8b-instant")

        with pytest.raises(ResponseFormatError, match="groq"):
            provider.parse_response({"error": {"message": "bad"}})
