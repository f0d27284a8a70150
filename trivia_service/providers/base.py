"""Base class for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..config import settings
from ..error_classifier import (
    ClassifiedError,
    ErrorCategory,
    ErrorClassifier,
    ErrorSeverity,
)
from ..prompts import SYSTEM_PROMPT

# Characters of each prompt part kept in request logs
LOGGED_CONTENT_CHARS = 100


def truncate_for_log(value: Any) -> str:
    """Shorten prompt text for logging."""
    if not isinstance(value, str):
        return "[content]"
    return f"{value[:LOGGED_CONTENT_CHARS]}..."


class LLMProviderError(Exception):
    """Exception raised by LLM providers with classification.

    Attributes:
        classified_error: The classified error with category and severity
        original_exception: The original exception that was raised
        status_code: HTTP status code, if a response was received
        retry_after: Seconds the provider asked callers to wait (429 only)
    """

    def __init__(
        self,
        classified_error: ClassifiedError,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None,
    ):
        """Initialize LLM provider error.

        Args:
            classified_error: The classified error
            original_exception: The original exception
            retry_after: Retry delay in seconds reported or computed for a 429
        """
        self.classified_error = classified_error
        self.original_exception = original_exception
        self.retry_after = retry_after
        super().__init__(str(classified_error))

    @property
    def provider(self) -> str:
        return self.classified_error.provider

    @property
    def status_code(self) -> Optional[int]:
        return self.classified_error.status_code

    @property
    def is_auth_error(self) -> bool:
        return self.classified_error.category == ErrorCategory.AUTHENTICATION

    @property
    def is_rate_limit_error(self) -> bool:
        return self.classified_error.category == ErrorCategory.RATE_LIMIT

    @property
    def is_retryable(self) -> bool:
        return self.classified_error.is_retryable


class ResponseFormatError(LLMProviderError):
    """Raised when a provider response envelope lacks the expected text field."""

    def __init__(self, provider: str, detail: str):
        super().__init__(
            ClassifiedError(
                category=ErrorCategory.INVALID_RESPONSE,
                severity=ErrorSeverity.MEDIUM,
                provider=provider,
                original_error="ResponseFormatError",
                message=f"Unexpected {provider} response format: {detail}",
                is_retryable=False,
            )
        )


@dataclass(frozen=True)
class ProviderRequest:
    """Everything needed for one HTTP call to a provider.

    Built fresh for every call from the provider's static configuration
    and the current prompt.
    """

    url: str
    headers: Mapping[str, str]
    body: Mapping[str, Any]
    timeout: float
    max_retries: int


@dataclass(frozen=True)
class ProviderResponse:
    """Parsed JSON body of a successful provider call."""

    data: Any
    status_code: int
    provider_name: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ABC):
    """Abstract base class for LLM provider integrations.

    A provider only knows how to describe its HTTP request and how to pull
    the generated text out of its response envelope. Retries, validation
    and caching live elsewhere.
    """

    name: str = ""
    endpoint: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        """
        Initialize the LLM provider.

        Args:
            api_key: API key for the provider (empty or None disables it)
            model: Model identifier to use
            timeout: Per-request timeout in seconds
            max_retries: Same-provider retries for transient failures
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
        """
        self.api_key = api_key or ""
        self.model = model
        self.timeout = (
            timeout if timeout is not None else settings.provider_timeout_seconds
        )
        self.max_retries = (
            max_retries if max_retries is not None else settings.provider_max_retries
        )
        self.temperature = (
            temperature if temperature is not None else settings.temperature
        )
        self.max_tokens = max_tokens if max_tokens is not None else settings.max_tokens

    def has_credentials(self) -> bool:
        """Check whether an API key is configured."""
        return bool(self.api_key and self.api_key.strip())

    def get_provider_name(self) -> str:
        """
        Get the name of this provider.

        Returns:
            Provider name (e.g., "openai", "anthropic", "google")
        """
        return self.name or self.__class__.__name__.replace("Provider", "").lower()

    def build_request(self, prompt: str) -> ProviderRequest:
        """Build the request description for a prompt."""
        return ProviderRequest(
            url=self.get_endpoint(),
            headers=self.get_headers(),
            body=self.build_body(prompt),
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

    def get_endpoint(self) -> str:
        """URL the request is POSTed to."""
        return self.endpoint

    def get_headers(self) -> Dict[str, str]:
        """Bearer-token headers, overridden by providers with other auth schemes."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @abstractmethod
    def build_body(self, prompt: str) -> Dict[str, Any]:
        """
        Build the JSON request body for a prompt.

        Args:
            prompt: The user prompt

        Returns:
            JSON-serializable request body
        """
        pass

    @abstractmethod
    def parse_response(self, data: Any) -> str:
        """
        Extract the generated text from the provider's response envelope.

        Args:
            data: Decoded JSON response body

        Returns:
            The raw generated text

        Raises:
            ResponseFormatError: If the envelope does not have the expected shape
        """
        pass

    def wrap_error(
        self, error: Exception, status_code: Optional[int] = None
    ) -> LLMProviderError:
        """Classify and wrap an API error.

        Args:
            error: The exception that was raised
            status_code: HTTP status code, if any

        Returns:
            LLMProviderError with classified error
        """
        classified = ErrorClassifier.classify_error(
            error=error,
            provider=self.get_provider_name(),
            status_code=status_code,
        )
        return LLMProviderError(
            classified_error=classified,
            original_exception=error,
        )

    def sanitize_body(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of a request body with prompt text truncated for logging.

        The default handles a chat-style ``messages`` list. Providers that
        place prompt text elsewhere extend this.
        """
        sanitized = dict(body)
        messages = sanitized.get("messages")
        if isinstance(messages, list):
            sanitized["messages"] = [
                {
                    "role": msg.get("role"),
                    "content": truncate_for_log(msg.get("content")),
                }
                for msg in messages
                if isinstance(msg, dict)
            ]
        return sanitized

    def _format_error(self, detail: str) -> ResponseFormatError:
        return ResponseFormatError(self.get_provider_name(), detail)

    def _chat_completions_body(self, prompt: str) -> Dict[str, Any]:
        """OpenAI-compatible chat completions body."""
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _parse_chat_completion(self, data: Any) -> str:
        """Extract ``choices[0].message.content`` from a chat completion."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._format_error("missing choices[0].message.content") from e
        if not isinstance(content, str) or not content.strip():
            raise self._format_error("empty message content")
        return content

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model!r})"
