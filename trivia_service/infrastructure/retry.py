"""Resilient HTTP invocation of LLM providers.

One ``invoke`` call performs a single provider request with a timeout and
its own retry loop for transient failures:

    401            -> fail immediately (credentials will not recover mid-call)
    429            -> wait max(backoff, Retry-After) and retry the same provider
    other non-2xx  -> exponential backoff with jitter, then retry
    network/timeout-> exponential backoff with jitter, then retry

Backoff for attempt ``n`` is ``base * 2**n`` plus a random jitter of up to
``min(10% of the delay, jitter cap)``. Rate limits use a much higher base.
This loop is separate from the generator's cross-provider attempts.
"""

import asyncio
import logging
import random
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..config import Settings, settings
from ..error_classifier import ClassifiedError, ErrorCategory, ErrorSeverity
from ..events import GenerationEventLogger, LoggingEventLogger
from ..providers.base import (
    BaseLLMProvider,
    LLMProviderError,
    ProviderRequest,
    ProviderResponse,
)

logger = logging.getLogger(__name__)

# Jitter is a fraction of the computed delay, capped by the config's max jitter
JITTER_RATIO = 0.1

# Characters of an error response body kept in error messages
ERROR_BODY_CHARS = 200

HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_TOO_MANY_REQUESTS = 429


@dataclass
class RetryConfig:
    """Backoff configuration for provider retries."""

    base_delay: float = 1.0
    """Seconds before the first retry of a generic failure."""

    max_jitter: float = 1.0
    """Upper bound in seconds on the random jitter for generic failures."""

    rate_limit_base_delay: float = 5.0
    """Seconds before the first retry after a 429."""

    rate_limit_max_jitter: float = 2.0
    """Upper bound in seconds on the random jitter after a 429."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_jitter < 0:
            raise ValueError("max_jitter must be non-negative")
        if self.rate_limit_base_delay < self.base_delay:
            raise ValueError("rate_limit_base_delay must be at least base_delay")
        if self.rate_limit_max_jitter < 0:
            raise ValueError("rate_limit_max_jitter must be non-negative")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "RetryConfig":
        """Create config from application settings.

        Args:
            config: Settings to read (the global settings when omitted)

        Returns:
            RetryConfig populated from settings
        """
        config = config or settings
        return cls(
            base_delay=config.retry_base_delay,
            max_jitter=config.retry_max_jitter,
            rate_limit_base_delay=config.rate_limit_base_delay,
            rate_limit_max_jitter=config.rate_limit_max_jitter,
        )


def calculate_backoff_delay(
    attempt: int,
    base_delay: float,
    max_jitter: float,
    retry_after: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> float:
    """Calculate the delay before the next retry.

    Args:
        attempt: Zero-based attempt number that just failed
        base_delay: Delay floor for attempt 0
        max_jitter: Cap on the random jitter in seconds
        retry_after: Provider hint in seconds; the delay is never shorter
        rng: Random source (module-level random when omitted)

    Returns:
        Delay in seconds
    """
    attempt = max(0, attempt)
    delay = base_delay * (2**attempt)
    if retry_after is not None and retry_after > 0:
        delay = max(delay, retry_after)

    jitter_cap = min(delay * JITTER_RATIO, max_jitter)
    jitter = (rng or random).uniform(0, jitter_cap) if jitter_cap > 0 else 0.0
    return delay + jitter


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header.

    Accepts delay-seconds or an HTTP date.

    Returns:
        Positive number of seconds, or None if absent or unparseable
    """
    if not value:
        return None
    value = value.strip()

    try:
        seconds = float(value)
    except ValueError:
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        seconds = (retry_at - datetime.now(timezone.utc)).total_seconds()

    return seconds if seconds > 0 else None


class RetryMetrics:
    """Counts retries performed by the invoker."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self.total_retries = 0
        self.rate_limit_retries = 0
        self.exhausted_retries = 0
        self.retries_by_provider: Dict[str, int] = defaultdict(int)

    def record_retry(self, provider: str, rate_limited: bool = False) -> None:
        with self._lock:
            self.total_retries += 1
            self.retries_by_provider[provider] += 1
            if rate_limited:
                self.rate_limit_retries += 1

    def record_exhausted(self, provider: str) -> None:
        with self._lock:
            self.exhausted_retries += 1
            self.retries_by_provider.setdefault(provider, 0)

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_retries": self.total_retries,
                "rate_limit_retries": self.rate_limit_retries,
                "exhausted_retries": self.exhausted_retries,
                "retries_by_provider": dict(self.retries_by_provider),
            }


class ResilientInvoker:
    """Performs provider HTTP calls with timeout, retry and backoff."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        retry_config: Optional[RetryConfig] = None,
        event_logger: Optional[GenerationEventLogger] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            client: Shared async HTTP client (created and owned if omitted)
            retry_config: Backoff configuration (from settings if omitted)
            event_logger: Structured event sink
            sleep: Awaitable sleep used between retries
            rng: Random source for jitter
        """
        self._client = client
        self._owns_client = client is None
        self.retry_config = retry_config or RetryConfig.from_settings()
        self.events = event_logger or LoggingEventLogger()
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self.metrics = RetryMetrics()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this invoker created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def invoke(
        self, provider: BaseLLMProvider, request: ProviderRequest
    ) -> ProviderResponse:
        """Call a provider, retrying transient failures on the same provider.

        Args:
            provider: Provider the request belongs to
            request: Request built by the provider

        Returns:
            Decoded response body with status metadata

        Raises:
            LLMProviderError: On 401, on an exhausted 429, or once retries
                for other failures run out
        """
        name = provider.get_provider_name()
        self.events.request(
            name,
            url=request.url.replace(provider.api_key, "[REDACTED]")
            if provider.api_key
            else request.url,
            timeout=request.timeout,
            max_retries=request.max_retries,
            model=request.body.get("model", provider.model),
            body=provider.sanitize_body(request.body),
        )

        last_error: Optional[LLMProviderError] = None

        for attempt in range(request.max_retries + 1):
            is_last_attempt = attempt == request.max_retries
            if attempt > 0:
                self.events.stats(
                    name,
                    event_type="retry_attempt",
                    attempt=attempt,
                    max_retries=request.max_retries,
                )

            try:
                response = await self._send(request)
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                last_error = self._timeout_error(name, request.timeout, e)
            except httpx.HTTPError as e:
                last_error = provider.wrap_error(e)
            else:
                status = response.status_code

                if status == HTTP_STATUS_UNAUTHORIZED:
                    error = provider.wrap_error(
                        self._status_error(name, response), status_code=status
                    )
                    self.events.error(
                        name,
                        "API key authentication failed",
                        status_code=status,
                        attempt=attempt + 1,
                    )
                    raise error

                if status == HTTP_STATUS_TOO_MANY_REQUESTS:
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                    delay = calculate_backoff_delay(
                        attempt,
                        self.retry_config.rate_limit_base_delay,
                        self.retry_config.rate_limit_max_jitter,
                        retry_after=retry_after,
                        rng=self._rng,
                    )
                    if is_last_attempt:
                        self.metrics.record_exhausted(name)
                        self.events.error(
                            name,
                            "Rate limit exceeded",
                            status_code=status,
                            attempt=attempt + 1,
                            retry_after=delay,
                        )
                        raise LLMProviderError(
                            classified_error=provider.wrap_error(
                                self._status_error(name, response), status_code=status
                            ).classified_error,
                            original_exception=None,
                            retry_after=delay,
                        )

                    self.events.stats(
                        name,
                        event_type="rate_limit_retry",
                        attempt=attempt + 1,
                        retry_after_header=retry_after,
                        delay=delay,
                    )
                    self.metrics.record_retry(name, rate_limited=True)
                    await self._sleep(delay)
                    continue

                if not response.is_success:
                    last_error = provider.wrap_error(
                        self._status_error(name, response), status_code=status
                    )
                else:
                    try:
                        data = response.json()
                    except ValueError as e:
                        last_error = self._invalid_body_error(name, status, e)
                    else:
                        self.events.stats(
                            name,
                            event_type="api_call_success",
                            attempt=attempt + 1,
                            status_code=status,
                        )
                        return ProviderResponse(
                            data=data,
                            status_code=status,
                            provider_name=name,
                            metadata={"attempts": attempt + 1},
                        )

            if is_last_attempt:
                break

            self.events.stats(
                name,
                event_type="api_call_retry",
                error=str(last_error),
                status_code=last_error.status_code,
                attempt=attempt + 1,
                max_retries=request.max_retries,
            )
            self.metrics.record_retry(name)
            await self._sleep(
                calculate_backoff_delay(
                    attempt,
                    self.retry_config.base_delay,
                    self.retry_config.max_jitter,
                    rng=self._rng,
                )
            )

        assert last_error is not None
        self.metrics.record_exhausted(name)
        self.events.error(
            name,
            "Provider call failed after retries",
            error=str(last_error),
            status_code=last_error.status_code,
            attempts=request.max_retries + 1,
            timeout=request.timeout,
        )
        raise last_error

    async def _send(self, request: ProviderRequest) -> httpx.Response:
        """POST the request, aborting it once the timeout fires."""
        client = self._get_client()
        return await asyncio.wait_for(
            client.post(
                request.url,
                headers=dict(request.headers),
                json=dict(request.body),
                timeout=request.timeout,
            ),
            timeout=request.timeout,
        )

    @staticmethod
    def _status_error(name: str, response: httpx.Response) -> httpx.HTTPStatusError:
        body = response.text[:ERROR_BODY_CHARS] if response.content else ""
        return httpx.HTTPStatusError(
            f"{name} API returned {response.status_code} "
            f"{response.reason_phrase}: {body}",
            request=response.request,
            response=response,
        )

    @staticmethod
    def _timeout_error(name: str, timeout: float, error: Exception) -> LLMProviderError:
        return LLMProviderError(
            classified_error=ClassifiedError(
                category=ErrorCategory.NETWORK_ERROR,
                severity=ErrorSeverity.LOW,
                provider=name,
                original_error=type(error).__name__,
                message=f"{name} API call timed out after {timeout}s",
                is_retryable=True,
            ),
            original_exception=error,
        )

    @staticmethod
    def _invalid_body_error(name: str, status: int, error: Exception) -> LLMProviderError:
        return LLMProviderError(
            classified_error=ClassifiedError(
                category=ErrorCategory.INVALID_RESPONSE,
                severity=ErrorSeverity.MEDIUM,
                provider=name,
                original_error=type(error).__name__,
                message=f"{name} returned a non-JSON response body",
                is_retryable=True,
                status_code=status,
            ),
            original_exception=error,
        )
