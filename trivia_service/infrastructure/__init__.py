"""Infrastructure for provider calls."""

from .retry import (
    ResilientInvoker,
    RetryConfig,
    RetryMetrics,
    calculate_backoff_delay,
    parse_retry_after,
)

__all__ = [
    "ResilientInvoker",
    "RetryConfig",
    "RetryMetrics",
    "calculate_backoff_delay",
    "parse_retry_after",
]
