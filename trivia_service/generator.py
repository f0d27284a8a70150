"""Trivia question generation across multiple LLM providers.

The generator rotates through the configured providers round-robin. Each
attempt goes through the resilient invoker (which retries transient
failures on the same provider) and the response normalizer. A failed
attempt moves on to the next provider until the attempt budget is spent.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from .config import Settings, settings as default_settings
from .events import GenerationEventLogger, LoggingEventLogger
from .infrastructure.retry import ResilientInvoker, RetryConfig
from .models import Question, normalize_difficulty
from .normalizer import ResponseNormalizer
from .prompts import build_generation_prompt
from .provider_stats import ProviderStats, ProviderStatsTracker
from .providers import (
    AnthropicProvider,
    BaseLLMProvider,
    GoogleProvider,
    GroqProvider,
    MistralProvider,
    OpenAIProvider,
)
from .question_cache import QuestionCache

logger = logging.getLogger(__name__)


class NoProvidersAvailableError(RuntimeError):
    """No provider has credentials configured."""

    def __init__(self, message: str = "No AI providers are configured"):
        super().__init__(message)


class QuestionGenerationError(Exception):
    """Every generation attempt failed.

    Attributes:
        last_error: The error from the final attempt
        topic: Requested topic
        difficulty: Requested difficulty
        attempts: Number of attempts made
    """

    def __init__(
        self,
        last_error: Exception,
        topic: str,
        difficulty: str,
        attempts: int,
    ):
        self.last_error = last_error
        self.topic = topic
        self.difficulty = difficulty
        self.attempts = attempts
        super().__init__(
            f"Failed to generate question about {topic!r} ({difficulty}) "
            f"after {attempts} attempts: {last_error}"
        )


def build_providers_from_settings(
    config: Optional[Settings] = None,
    event_logger: Optional[GenerationEventLogger] = None,
) -> List[BaseLLMProvider]:
    """Create every provider that has an API key configured.

    Providers without a key are reported through ``config_missing`` and left
    out of the returned list.
    """
    config = config or default_settings
    events = event_logger or LoggingEventLogger()

    common = dict(
        timeout=config.provider_timeout_seconds,
        max_retries=config.provider_max_retries,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
    candidates: List[BaseLLMProvider] = [
        OpenAIProvider(
            api_key=config.openai_api_key, model=config.openai_model, **common
        ),
        AnthropicProvider(
            api_key=config.anthropic_api_key, model=config.anthropic_model, **common
        ),
        GoogleProvider(
            api_key=config.google_api_key, model=config.google_model, **common
        ),
        MistralProvider(
            api_key=config.mistral_api_key, model=config.mistral_model, **common
        ),
        GroqProvider(api_key=config.groq_api_key, model=config.groq_model, **common),
    ]

    providers = []
    for provider in candidates:
        if provider.has_credentials():
            providers.append(provider)
            logger.info(
                f"Initialized {provider.get_provider_name()} provider "
                f"with model {provider.model}"
            )
        else:
            events.config_missing(
                provider.get_provider_name(),
                env_var=f"{provider.get_provider_name().upper()}_API_KEY",
            )
    return providers


class TriviaQuestionGenerator:
    """Generates trivia questions using whichever providers are configured."""

    def __init__(
        self,
        providers: Optional[Sequence[BaseLLMProvider]] = None,
        config: Optional[Settings] = None,
        invoker: Optional[ResilientInvoker] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        cache: Optional[QuestionCache] = None,
        stats_tracker: Optional[ProviderStatsTracker] = None,
        event_logger: Optional[GenerationEventLogger] = None,
        max_retries: Optional[int] = None,
    ):
        """
        Args:
            providers: Providers to rotate through (built from settings if None)
            config: Settings used for defaults
            invoker: HTTP invoker shared by all providers
            normalizer: Converts model replies into Questions
            cache: Recent-question cache for duplicate detection
            stats_tracker: Per-provider stats
            event_logger: Structured event sink
            max_retries: Cross-provider retries after the first attempt
        """
        self._config = config or default_settings
        self.events = event_logger or LoggingEventLogger()

        if providers is None:
            providers = build_providers_from_settings(self._config, self.events)
        self.providers: List[BaseLLMProvider] = list(providers)

        self.invoker = invoker or ResilientInvoker(
            retry_config=RetryConfig.from_settings(self._config),
            event_logger=self.events,
        )
        self.normalizer = normalizer or ResponseNormalizer()
        self.cache = cache or QuestionCache.from_settings(self._config)
        self.stats = stats_tracker or ProviderStatsTracker()
        for provider in self.providers:
            self.stats.register(provider.get_provider_name())

        self.max_retries = (
            max_retries
            if max_retries is not None
            else self._config.generation_max_retries
        )
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")

        self._cursor = 0
        self._cursor_lock = threading.Lock()

        if self.providers:
            logger.info(
                f"TriviaQuestionGenerator initialized with {len(self.providers)} "
                f"providers: {', '.join(self.get_provider_names())}"
            )
        else:
            logger.warning("TriviaQuestionGenerator initialized with no providers")

    def _select_provider(self) -> BaseLLMProvider:
        """Pick the next provider round-robin."""
        with self._cursor_lock:
            provider = self.providers[self._cursor % len(self.providers)]
            self._cursor = (self._cursor + 1) % len(self.providers)
        return provider

    async def generate_question(
        self,
        topic: str,
        difficulty: str,
        exclude_questions: Optional[Sequence[str]] = None,
    ) -> Question:
        """Generate one validated trivia question.

        Args:
            topic: Question topic
            difficulty: "easy", "medium", "hard" or "custom:<description>"
            exclude_questions: Question texts the model should not repeat

        Returns:
            Validated Question with shuffled answers

        Raises:
            NoProvidersAvailableError: If no provider is configured
            ValueError: If the difficulty is not recognized
            QuestionGenerationError: If every attempt failed
        """
        if not self.providers:
            self.events.error(
                "all", "No AI providers are configured", topic=topic, difficulty=difficulty
            )
            raise NoProvidersAvailableError()

        difficulty = normalize_difficulty(difficulty)
        prompt = build_generation_prompt(
            topic,
            difficulty,
            answer_count=self._config.default_answer_count,
            exclude_questions=exclude_questions,
        )

        logger.info(
            f"Generating question about {topic!r} at {difficulty} difficulty "
            f"({len(self.providers)} providers, {self.max_retries + 1} attempts)"
        )

        start_time = time.perf_counter()
        last_error: Optional[Exception] = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            provider = self._select_provider()
            name = provider.get_provider_name()
            attempts += 1

            self.stats.record_request(name)
            provider_start = time.perf_counter()

            try:
                question = await self._generate_with_provider(
                    provider, prompt, topic, difficulty
                )
            except Exception as e:
                last_error = e
                self.stats.record_failure(name)
                self.events.fallback(
                    name,
                    topic=topic,
                    difficulty=difficulty,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            provider_ms = (time.perf_counter() - provider_start) * 1000
            self.stats.record_success(name, provider_ms)
            self.events.success(
                name,
                topic=topic,
                difficulty=difficulty,
                attempt=attempt + 1,
                duration_ms=provider_ms,
                total_duration_ms=(time.perf_counter() - start_time) * 1000,
                question_id=question.id,
            )

            if self.cache.is_duplicate(question):
                self.events.duplicate(
                    name,
                    topic=topic,
                    difficulty=difficulty,
                    question_text=question.question_text,
                )
            self.cache.add(question)
            return question

        assert last_error is not None
        error = QuestionGenerationError(last_error, topic, difficulty, attempts)
        self.events.error(
            "all",
            str(error),
            topic=topic,
            difficulty=difficulty,
            attempts=attempts,
            total_providers=len(self.providers),
            exception=error,
        )
        raise error from last_error

    async def _generate_with_provider(
        self,
        provider: BaseLLMProvider,
        prompt: str,
        topic: str,
        difficulty: str,
    ) -> Question:
        request = provider.build_request(prompt)
        response = await self.invoker.invoke(provider, request)
        raw_text = provider.parse_response(response.data)
        return self.normalizer.normalize(
            raw_text, topic, difficulty, provider=provider.get_provider_name()
        )

    def get_provider_stats(self) -> Dict[str, Any]:
        """Summary of configured providers and their counters.

        Returns:
            Dictionary with provider count, rotation cursor and per-provider stats
        """
        with self._cursor_lock:
            cursor = self._cursor
        return {
            "total_providers": len(self.providers),
            "current_provider_index": cursor,
            "providers": self.get_provider_names(),
            "provider_details": {
                name: stats.to_dict() for name, stats in self.stats.get_stats().items()
            },
            "retries": self.invoker.metrics.get_summary(),
            "cache": self.cache.get_stats(),
        }

    def get_provider_health(self) -> Dict[str, ProviderStats]:
        """Per-provider stats snapshot."""
        return self.stats.get_stats()

    def get_best_provider(self) -> Optional[str]:
        return self.stats.get_best_provider()

    def get_available_providers_count(self) -> int:
        return len(self.providers)

    def get_provider_names(self) -> List[str]:
        return [provider.get_provider_name() for provider in self.providers]

    def reset_provider_stats(self) -> None:
        """Zero all provider counters."""
        self.stats.reset()
        self.events.stats("all", event_type="reset")

    async def cleanup(self) -> None:
        """Close the shared HTTP client."""
        logger.info("Cleaning up trivia question generator resources...")
        await self.invoker.aclose()
        logger.info("Trivia question generator cleanup complete")

    async def __aenter__(self) -> "TriviaQuestionGenerator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit - ensures cleanup is called."""
        await self.cleanup()
