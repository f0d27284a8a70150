"""Per-provider health and performance statistics.

Stats are observational: they are exposed for monitoring and best-provider
queries but never influence provider selection.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

PROVIDER_STATUS_AVAILABLE = "available"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProviderStats:
    """Counters for a single provider."""

    provider_name: str
    requests: int = 0
    successes: int = 0
    failures: int = 0
    average_response_time_ms: float = 0.0
    last_used: Optional[datetime] = None
    status: str = PROVIDER_STATUS_AVAILABLE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def success_rate(self) -> float:
        return self.successes / self.requests if self.requests > 0 else 0.0

    @property
    def error_rate(self) -> float:
        return self.failures / self.requests if self.requests > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_name": self.provider_name,
            "requests": self.requests,
            "successes": self.successes,
            "failures": self.failures,
            "average_response_time_ms": self.average_response_time_ms,
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "status": self.status,
            "success_rate": self.success_rate,
            "error_rate": self.error_rate,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class ProviderStatsTracker:
    """Thread-safe registry of ProviderStats keyed by provider name.

    Events for providers that were never registered are ignored.
    """

    def __init__(self, provider_names: Iterable[str] = ()):
        self._stats: Dict[str, ProviderStats] = {}
        self._lock = threading.Lock()
        for name in provider_names:
            self.register(name)

    def register(self, provider_name: str) -> None:
        """Start tracking a provider (no-op if already tracked)."""
        with self._lock:
            if provider_name not in self._stats:
                self._stats[provider_name] = ProviderStats(provider_name=provider_name)

    def record_request(self, provider_name: str) -> None:
        with self._lock:
            stats = self._stats.get(provider_name)
            if stats is None:
                return
            stats.requests += 1
            stats.updated_at = _utcnow()

    def record_success(
        self, provider_name: str, response_time_ms: Optional[float] = None
    ) -> None:
        """Record a success and fold its response time into the running mean."""
        with self._lock:
            stats = self._stats.get(provider_name)
            if stats is None:
                return
            stats.successes += 1
            stats.last_used = _utcnow()
            stats.updated_at = stats.last_used
            if response_time_ms is not None:
                total = (
                    stats.average_response_time_ms * (stats.successes - 1)
                    + response_time_ms
                )
                stats.average_response_time_ms = total / stats.successes

    def record_failure(self, provider_name: str) -> None:
        with self._lock:
            stats = self._stats.get(provider_name)
            if stats is None:
                return
            stats.failures += 1
            stats.updated_at = _utcnow()

    def get_stats(self) -> Dict[str, ProviderStats]:
        """Snapshot of all provider stats."""
        with self._lock:
            return {name: copy.copy(s) for name, s in self._stats.items()}

    def get_stats_for(self, provider_name: str) -> Optional[ProviderStats]:
        with self._lock:
            stats = self._stats.get(provider_name)
            return copy.copy(stats) if stats is not None else None

    def get_best_provider(self) -> Optional[str]:
        """Pick the available provider with the best success rate and latency.

        Score is ``success_rate * 100 - average_response_time_ms / 1000``.
        Ties keep the earliest registered provider.

        Returns:
            Provider name, or None when no provider scores above -1
        """
        best_provider: Optional[str] = None
        best_score = -1.0
        with self._lock:
            for name, stats in self._stats.items():
                if stats.status != PROVIDER_STATUS_AVAILABLE:
                    continue
                score = stats.success_rate * 100 - stats.average_response_time_ms / 1000
                if score > best_score:
                    best_score = score
                    best_provider = name
        return best_provider

    def reset(self) -> None:
        """Zero every provider's counters."""
        with self._lock:
            for name in self._stats:
                self._stats[name] = ProviderStats(provider_name=name)
        logger.info("Reset provider statistics")
