"""Tests for the trivia question generator."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from trivia_service.config import Settings
from trivia_service.generator import (
    NoProvidersAvailableError,
    QuestionGenerationError,
    TriviaQuestionGenerator,
    build_providers_from_settings,
)
from trivia_service.infrastructure.retry import ResilientInvoker, RetryConfig
from trivia_service.normalizer import UnableToGenerateError
from trivia_service.providers import (
    AnthropicProvider,
    GroqProvider,
    LLMProviderError,
    MistralProvider,
    OpenAIProvider,
)

ANTHROPIC_HOST = "api.anthropic.com"


def anthropic_message(content: str) -> dict:
    return {"content": [{"type": "text", "text": content}]}


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key=None,
        anthropic_api_key=None,
        google_api_key=None,
        mistral_api_key=None,
        groq_api_key=None,
    )


@pytest.fixture
def providers(mock_api_key):
    """Three chat-completion style providers with no same-provider retries."""
    return [
        OpenAIProvider(api_key=mock_api_key, model="gpt-4o-mini", max_retries=0),
        MistralProvider(api_key=mock_api_key, model="mistral-small-latest", max_retries=0),
        GroqProvider(api_key=mock_api_key, model="llama-3.1-8b-instant", max_retries=0),
    ]


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def make_generator(config, sleep, event_recorder):
    """Factory wiring a generator to a scripted HTTP transport."""

    def _make(providers, transport, max_retries=2):
        invoker = ResilientInvoker(
            client=transport.client(),
            retry_config=RetryConfig(
                base_delay=0.0,
                max_jitter=0.0,
                rate_limit_base_delay=0.0,
                rate_limit_max_jitter=0.0,
            ),
            event_logger=event_recorder,
            sleep=sleep,
        )
        return TriviaQuestionGenerator(
            providers=providers,
            config=config,
            invoker=invoker,
            event_logger=event_recorder,
            max_retries=max_retries,
        )

    return _make


class TestTriviaQuestionGenerator:
    """Tests for TriviaQuestionGenerator.generate_question."""

    @pytest.mark.asyncio
    async def test_capitals_single_provider(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        """Test the end-to-end France/Paris scenario."""
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers[:1], transport)

        question = await generator.generate_question("Capitals", "easy")

        assert question.question_text == "What is the capital of France?"
        assert len(question.answers) == 3
        assert [a.text for a in question.answers if a.is_correct] == ["Paris"]
        assert question.answers[question.correct_answer_index].is_correct
        stats = generator.get_provider_health()["openai"]
        assert stats.requests == 1
        assert stats.successes == 1
        assert stats.failures == 0

    @pytest.mark.asyncio
    async def test_no_providers_fails_without_network(
        self, make_generator, scripted_transport
    ):
        """Test that an empty provider list is terminal and makes no request."""
        transport = scripted_transport(httpx.Response(200, json={}))
        generator = make_generator([], transport)

        with pytest.raises(NoProvidersAvailableError):
            await generator.generate_question("Capitals", "easy")

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_round_robin_selects_each_provider_once(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        """Test that N sequential calls hit N distinct providers in order."""
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers, transport)

        for _ in range(len(providers)):
            await generator.generate_question("Capitals", "easy")

        hosts = [request.url.host for request in transport.requests]
        assert hosts == ["api.openai.com", "api.mistral.ai", "api.groq.com"]
        for stats in generator.get_provider_health().values():
            assert stats.requests == 1
            assert stats.successes == 1

    @pytest.mark.asyncio
    async def test_round_robin_under_concurrency(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        """Test that concurrent calls still spread across providers."""
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers, transport)

        await asyncio.gather(
            *(generator.generate_question("Capitals", "easy") for _ in providers)
        )

        hosts = sorted(request.url.host for request in transport.requests)
        assert hosts == ["api.groq.com", "api.mistral.ai", "api.openai.com"]

    @pytest.mark.asyncio
    async def test_401_moves_to_next_provider_without_sleep(
        self,
        make_generator,
        mock_api_key,
        scripted_transport,
        capitals_payload,
        sleep,
        event_recorder,
    ):
        """Test that an auth failure falls through to the next provider."""
        providers = [
            AnthropicProvider(
                api_key=mock_api_key, model="claude-3-5-haiku-latest", max_retries=3
            ),
            OpenAIProvider(api_key=mock_api_key, model="gpt-4o-mini", max_retries=3),
        ]

        def route(request: httpx.Request) -> httpx.Response:
            if request.url.host == ANTHROPIC_HOST:
                return httpx.Response(401, json={"error": {"type": "authentication_error"}})
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": json.dumps(capitals_payload)}}]},
            )

        transport = scripted_transport(route)
        generator = make_generator(providers, transport)

        question = await generator.generate_question("Capitals", "easy")

        assert question.metadata["provider"] == "openai"
        sleep.assert_not_awaited()
        hosts = [request.url.host for request in transport.requests]
        assert hosts == [ANTHROPIC_HOST, "api.openai.com"]
        health = generator.get_provider_health()
        assert health["anthropic"].failures == 1
        assert health["openai"].successes == 1
        [(name, data)] = event_recorder.of_type("fallback")
        assert name == "anthropic"
        assert data["attempt"] == 1

    @pytest.mark.asyncio
    async def test_all_providers_fail(
        self, make_generator, providers, scripted_transport, event_recorder
    ):
        """Test that exhausting attempts raises one aggregated error."""
        transport = scripted_transport(httpx.Response(500, text="Internal Server Error"))
        generator = make_generator(providers, transport, max_retries=2)

        with pytest.raises(QuestionGenerationError) as exc_info:
            await generator.generate_question("Capitals", "easy")

        error = exc_info.value
        assert error.attempts == 3
        assert error.topic == "Capitals"
        assert error.difficulty == "easy"
        assert isinstance(error.last_error, LLMProviderError)
        assert error.last_error.provider == "groq"
        assert error.last_error.status_code == 500
        assert error.__cause__ is error.last_error

        for stats in generator.get_provider_health().values():
            assert stats.requests == 1
            assert stats.failures == 1
            assert stats.successes == 0
        assert len(event_recorder.of_type("fallback")) == 3
        errors = [data for name, data in event_recorder.of_type("error") if name == "all"]
        assert len(errors) == 1
        assert errors[0]["exception"] is error

    @pytest.mark.asyncio
    async def test_single_provider_reused_across_attempts(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        """Test that one provider is retried on every attempt."""
        transport = scripted_transport(
            httpx.Response(503, text="busy"),
            httpx.Response(200, json=capitals_completion),
        )
        generator = make_generator(providers[:1], transport)

        question = await generator.generate_question("Capitals", "easy")

        assert question.correct_answer.text == "Paris"
        stats = generator.get_provider_health()["openai"]
        assert stats.requests == 2
        assert stats.failures == 1
        assert stats.successes == 1

    @pytest.mark.asyncio
    async def test_null_question_fails_without_same_provider_retry(
        self, make_generator, mock_api_key, scripted_transport, make_chat_completion
    ):
        """Test that a refusal is not retried by the invoker."""
        provider = OpenAIProvider(api_key=mock_api_key, model="gpt-4o-mini", max_retries=3)
        refusal = make_chat_completion(
            json.dumps({"question": None, "answers": [], "explanation": "Too niche"})
        )
        transport = scripted_transport(httpx.Response(200, json=refusal))
        generator = make_generator([provider], transport, max_retries=0)

        with pytest.raises(QuestionGenerationError) as exc_info:
            await generator.generate_question("Obscure", "hard")

        assert isinstance(exc_info.value.last_error, UnableToGenerateError)
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_duplicate_is_logged_but_returned(
        self,
        make_generator,
        providers,
        scripted_transport,
        capitals_completion,
        event_recorder,
    ):
        """Test that duplicate detection is observational only."""
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers[:1], transport)

        first = await generator.generate_question("Capitals", "easy")
        second = await generator.generate_question("Capitals", "easy")

        assert second.question_text == first.question_text
        assert second.id != first.id
        [(name, data)] = event_recorder.of_type("duplicate")
        assert name == "openai"
        assert data["topic"] == "Capitals"

    @pytest.mark.asyncio
    async def test_exclude_questions_reach_prompt(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers[:1], transport)

        await generator.generate_question(
            "Capitals", "easy", exclude_questions=["What is the capital of Italy?"]
        )

        body = json.loads(transport.requests[0].content)
        assert "What is the capital of Italy?" in body["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_custom_difficulty(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers[:1], transport)

        question = await generator.generate_question("Capitals", "Custom: expert geographer")

        assert question.difficulty == "custom:expert geographer"
        assert question.metadata["custom_difficulty_multiplier"] == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_invalid_difficulty_rejected(
        self, make_generator, providers, scripted_transport
    ):
        transport = scripted_transport(httpx.Response(200, json={}))
        generator = make_generator(providers, transport)

        with pytest.raises(ValueError, match="Unknown difficulty"):
            await generator.generate_question("Capitals", "impossible")

        assert transport.requests == []


class TestGeneratorObservability:
    """Tests for the generator's stats accessors."""

    @pytest.mark.asyncio
    async def test_get_provider_stats(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        transport = scripted_transport(httpx.Response(200, json=capitals_completion))
        generator = make_generator(providers, transport)
        await generator.generate_question("Capitals", "easy")

        stats = generator.get_provider_stats()

        assert stats["total_providers"] == 3
        assert stats["current_provider_index"] == 1
        assert stats["providers"] == ["openai", "mistral", "groq"]
        assert stats["provider_details"]["openai"]["successes"] == 1
        assert stats["cache"]["size"] == 1
        assert stats["retries"]["total_retries"] == 0

    def test_names_and_count(self, make_generator, providers, scripted_transport):
        generator = make_generator(providers, scripted_transport(httpx.Response(200)))

        assert generator.get_provider_names() == ["openai", "mistral", "groq"]
        assert generator.get_available_providers_count() == 3

    @pytest.mark.asyncio
    async def test_best_provider_and_reset(
        self, make_generator, providers, scripted_transport, capitals_completion
    ):
        def route(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.openai.com":
                return httpx.Response(500, text="down")
            return httpx.Response(200, json=capitals_completion)

        generator = make_generator(providers, scripted_transport(route), max_retries=1)
        await generator.generate_question("Capitals", "easy")

        assert generator.get_best_provider() == "mistral"

        generator.reset_provider_stats()

        health = generator.get_provider_health()
        assert all(s.requests == 0 for s in health.values())
        assert generator.get_best_provider() == "openai"

    def test_negative_max_retries_rejected(self, config, providers):
        with pytest.raises(ValueError):
            TriviaQuestionGenerator(
                providers=providers, config=config, invoker=Mock(), max_retries=-1
            )

    @pytest.mark.asyncio
    async def test_async_context_manager_closes_invoker(self, config, providers):
        invoker = Mock()
        invoker.aclose = AsyncMock()

        async with TriviaQuestionGenerator(
            providers=providers, config=config, invoker=invoker
        ) as generator:
            assert generator.get_available_providers_count() == 3

        invoker.aclose.assert_awaited_once()


class TestBuildProvidersFromSettings:
    """Tests for build_providers_from_settings."""

    def test_only_providers_with_keys(self, event_recorder):
        config = Settings(
            _env_file=None,
            openai_api_key="sk-openai",
            anthropic_api_key="",
            google_api_key="g-key",
            mistral_api_key=None,
            groq_api_key=None,
        )

        providers = build_providers_from_settings(config, event_recorder)

        assert [p.get_provider_name() for p in providers] == ["openai", "google"]
        missing = [name for name, _ in event_recorder.of_type("config_missing")]
        assert missing == ["anthropic", "mistral", "groq"]

    def test_models_from_settings(self, event_recorder):
        config = Settings(
            _env_file=None,
            openai_api_key=None,
            anthropic_api_key=None,
            google_api_key=None,
            mistral_api_key=None,
            groq_api_key="gsk",
            groq_model="llama-3.3-70b-versatile",
        )

        [provider] = build_providers_from_settings(config, event_recorder)

        assert provider.model == "llama-3.3-70b-versatile"

    def test_request_settings_from_config(self, event_recorder):
        """Test that timeouts, retries and sampling come from the given settings."""
        config = Settings(
            _env_file=None,
            openai_api_key="sk-openai",
            anthropic_api_key="sk-ant",
            google_api_key=None,
            mistral_api_key=None,
            groq_api_key=None,
            provider_timeout_seconds=3.0,
            provider_max_retries=0,
            temperature=0.2,
            max_tokens=256,
        )

        providers = build_providers_from_settings(config, event_recorder)

        assert len(providers) == 2
        for provider in providers:
            request = provider.build_request("prompt")
            assert request.timeout == pytest.approx(3.0)
            assert request.max_retries == 0
            assert provider.temperature == pytest.approx(0.2)
            assert provider.max_tokens == 256

    def test_generator_uses_injected_settings(self, event_recorder):
        """Test that the default invoker and cache are built from the given settings."""
        config = Settings(
            _env_file=None,
            openai_api_key="sk-openai",
            anthropic_api_key=None,
            google_api_key=None,
            mistral_api_key=None,
            groq_api_key=None,
            provider_timeout_seconds=3.0,
            retry_base_delay=0.5,
            rate_limit_base_delay=9.0,
            question_cache_max_size=7,
        )

        generator = TriviaQuestionGenerator(config=config, event_logger=event_recorder)

        [provider] = generator.providers
        assert provider.timeout == pytest.approx(3.0)
        assert generator.invoker.retry_config.base_delay == pytest.approx(0.5)
        assert generator.invoker.retry_config.rate_limit_base_delay == pytest.approx(9.0)
        assert generator.cache.get_stats()["max_size"] == 7

    @pytest.mark.asyncio
    async def test_generator_without_keys_has_no_providers(self, config, event_recorder):
        generator = TriviaQuestionGenerator(
            config=config, invoker=Mock(), event_logger=event_recorder
        )

        assert generator.get_available_providers_count() == 0
        assert len(event_recorder.of_type("config_missing")) == 5
        with pytest.raises(NoProvidersAvailableError):
            await generator.generate_question("Capitals", "easy")
