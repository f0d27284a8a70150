"""Error classification for LLM API failures.

This module classifies failures from the trivia generation providers into
categories and severities. HTTP status codes, when known, take precedence
over message pattern matching.
"""

import re
from enum import Enum
from typing import Optional

import httpx


class ErrorCategory(Enum):
    """Categories of API errors."""

    BILLING_QUOTA = "billing_quota"  # Insufficient funds, quota exceeded
    RATE_LIMIT = "rate_limit"  # 429 / throttling
    AUTHENTICATION = "authentication"  # API key invalid or expired
    INVALID_REQUEST = "invalid_request"  # Malformed request or invalid parameters
    SERVER_ERROR = "server_error"  # Provider server errors (5xx)
    NETWORK_ERROR = "network_error"  # Connection/timeout errors
    INVALID_RESPONSE = "invalid_response"  # Unexpected response envelope
    UNKNOWN = "unknown"  # Unclassified errors


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    CRITICAL = "critical"  # Requires immediate attention (e.g., billing, auth)
    HIGH = "high"  # Important but not blocking (e.g., rate limits)
    MEDIUM = "medium"  # Should be addressed (e.g., invalid requests)
    LOW = "low"  # Informational (e.g., temporary network issues)


class ClassifiedError:
    """A classified API error with category and severity."""

    def __init__(
        self,
        category: ErrorCategory,
        severity: ErrorSeverity,
        provider: str,
        original_error: str,
        message: str,
        is_retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        """Initialize classified error.

        Args:
            category: Error category
            severity: Error severity level
            provider: LLM provider name (openai, anthropic, etc.)
            original_error: Original error type name
            message: Human-readable error message
            is_retryable: Whether the error is transient and retryable
            status_code: HTTP status code, when one was received
        """
        self.category = category
        self.severity = severity
        self.provider = provider
        self.original_error = original_error
        self.message = message
        self.is_retryable = is_retryable
        self.status_code = status_code

    def __str__(self) -> str:
        """String representation of classified error."""
        return (
            f"[{self.severity.value.upper()}] {self.provider}: "
            f"{self.category.value} - {self.message}"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "provider": self.provider,
            "original_error": self.original_error,
            "message": self.message,
            "is_retryable": self.is_retryable,
            "status_code": self.status_code,
        }


class ErrorClassifier:
    """Classifies API errors from the trivia generation providers."""

    # Patterns for billing/quota errors
    BILLING_PATTERNS = [
        r"insufficient.*funds",
        r"quota.*exceeded",
        r"billing.*issue",
        r"insufficient.*quota",
        r"credit.*balance",
        r"payment.*required",
        r"account.*suspended",
    ]

    # Patterns for rate limit errors
    RATE_LIMIT_PATTERNS = [
        r"rate.*limit",
        r"too.*many.*requests",
        r"throttl",
        r"requests.*per.*minute",
    ]

    # Patterns for authentication errors
    AUTH_PATTERNS = [
        r"invalid.*api.*key",
        r"authentication.*failed",
        r"unauthorized",
        r"api.*key.*expired",
        r"invalid.*credentials",
    ]

    # Patterns for server errors
    SERVER_ERROR_PATTERNS = [
        r"internal.*server.*error",
        r"service.*unavailable",
        r"server.*error",
        r"upstream.*error",
        r"overloaded",
    ]

    # Patterns for network errors
    NETWORK_PATTERNS = [
        r"connection.*error",
        r"timed?\s*out",
        r"timeout",
        r"network.*error",
        r"connection.*refused",
        r"connection.*reset",
        r"dns.*error",
        r"fetch.*failed",
    ]

    @staticmethod
    def classify_error(
        error: Exception,
        provider: str,
        status_code: Optional[int] = None,
    ) -> ClassifiedError:
        """Classify an API error.

        Args:
            error: The exception that was raised
            provider: Provider name (openai, anthropic, google, mistral, groq)
            status_code: HTTP status code if a response was received

        Returns:
            ClassifiedError with category and severity
        """
        error_type = type(error).__name__

        if status_code is not None:
            classified = ErrorClassifier._classify_status(
                status_code, provider, error_type
            )
            if classified is not None:
                return classified

        if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
            return ErrorClassifier._network_error(provider, error_type, status_code)

        error_str = str(error).lower()

        # Check for billing/quota errors (CRITICAL)
        if ErrorClassifier._match_patterns(error_str, ErrorClassifier.BILLING_PATTERNS):
            return ErrorClassifier._billing_error(provider, error_type, status_code)

        # Check for authentication errors (CRITICAL)
        if ErrorClassifier._match_patterns(error_str, ErrorClassifier.AUTH_PATTERNS):
            return ErrorClassifier._auth_error(provider, error_type, status_code)

        # Check for rate limit errors (HIGH - retryable)
        if ErrorClassifier._match_patterns(
            error_str, ErrorClassifier.RATE_LIMIT_PATTERNS
        ):
            return ErrorClassifier._rate_limit_error(provider, error_type, status_code)

        # Check for server errors (MEDIUM - retryable)
        if ErrorClassifier._match_patterns(
            error_str, ErrorClassifier.SERVER_ERROR_PATTERNS
        ):
            return ErrorClassifier._server_error(provider, error_type, status_code)

        # Check for network errors (LOW - retryable)
        if ErrorClassifier._match_patterns(error_str, ErrorClassifier.NETWORK_PATTERNS):
            return ErrorClassifier._network_error(provider, error_type, status_code)

        # Unknown errors are treated like transient failures by the invoker
        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            original_error=error_type,
            message=f"Unclassified error from {provider}: {str(error)[:100]}",
            is_retryable=True,
            status_code=status_code,
        )

    @staticmethod
    def _classify_status(
        status_code: int, provider: str, error_type: str
    ) -> Optional[ClassifiedError]:
        """Classify by HTTP status code.

        Returns:
            ClassifiedError, or None if the status carries no category
        """
        if status_code == 401:
            return ErrorClassifier._auth_error(provider, error_type, status_code)
        if status_code == 402:
            return ErrorClassifier._billing_error(provider, error_type, status_code)
        if status_code == 429:
            return ErrorClassifier._rate_limit_error(provider, error_type, status_code)
        if status_code >= 500:
            return ErrorClassifier._server_error(provider, error_type, status_code)
        if 400 <= status_code < 500:
            # Other 4xx responses (403 included) get the generic retry treatment
            return ClassifiedError(
                category=ErrorCategory.INVALID_REQUEST,
                severity=ErrorSeverity.MEDIUM,
                provider=provider,
                original_error=error_type,
                message=f"{provider} rejected the request with status {status_code}.",
                is_retryable=True,
                status_code=status_code,
            )
        return None

    @staticmethod
    def _billing_error(
        provider: str, error_type: str, status_code: Optional[int]
    ) -> ClassifiedError:
        return ClassifiedError(
            category=ErrorCategory.BILLING_QUOTA,
            severity=ErrorSeverity.CRITICAL,
            provider=provider,
            original_error=error_type,
            message=(
                f"Billing or quota issue detected. Please check your {provider} "
                f"account balance and usage limits."
            ),
            is_retryable=False,
            status_code=status_code,
        )

    @staticmethod
    def _auth_error(
        provider: str, error_type: str, status_code: Optional[int]
    ) -> ClassifiedError:
        return ClassifiedError(
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.CRITICAL,
            provider=provider,
            original_error=error_type,
            message=(
                f"Authentication failed. Please verify your {provider} API key "
                f"is valid and has not expired."
            ),
            is_retryable=False,
            status_code=status_code,
        )

    @staticmethod
    def _rate_limit_error(
        provider: str, error_type: str, status_code: Optional[int]
    ) -> ClassifiedError:
        return ClassifiedError(
            category=ErrorCategory.RATE_LIMIT,
            severity=ErrorSeverity.HIGH,
            provider=provider,
            original_error=error_type,
            message=f"Rate limit exceeded for {provider}. Consider reducing request frequency.",
            is_retryable=True,
            status_code=status_code,
        )

    @staticmethod
    def _server_error(
        provider: str, error_type: str, status_code: Optional[int]
    ) -> ClassifiedError:
        return ClassifiedError(
            category=ErrorCategory.SERVER_ERROR,
            severity=ErrorSeverity.MEDIUM,
            provider=provider,
            original_error=error_type,
            message=f"{provider} server error. This may be temporary.",
            is_retryable=True,
            status_code=status_code,
        )

    @staticmethod
    def _network_error(
        provider: str, error_type: str, status_code: Optional[int]
    ) -> ClassifiedError:
        return ClassifiedError(
            category=ErrorCategory.NETWORK_ERROR,
            severity=ErrorSeverity.LOW,
            provider=provider,
            original_error=error_type,
            message="Network connectivity issue. This may be temporary.",
            is_retryable=True,
            status_code=status_code,
        )

    @staticmethod
    def _match_patterns(text: str, patterns: list[str]) -> bool:
        """Check if text matches any of the given regex patterns.

        Args:
            text: Text to search
            patterns: List of regex patterns

        Returns:
            True if any pattern matches
        """
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False

    @staticmethod
    def should_alert(classified_error: ClassifiedError) -> bool:
        """Determine if an error should trigger an alert.

        Args:
            classified_error: The classified error

        Returns:
            True if alert should be sent
        """
        # Alert on CRITICAL errors (billing, auth)
        if classified_error.severity == ErrorSeverity.CRITICAL:
            return True

        # Alert on HIGH severity errors if they're not retryable
        if (
            classified_error.severity == ErrorSeverity.HIGH
            and not classified_error.is_retryable
        ):
            return True

        return False
