"""Generation event logging.

The generator, invoker and normalizer report what happens to an injected
``GenerationEventLogger``. The default implementation writes structured
records through stdlib logging and mirrors counters to the observability
facade; hosts can substitute their own sink.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from .observability import ObservabilityFacade, observability

logger = logging.getLogger(__name__)


class GenerationEventLogger(ABC):
    """Port for structured generation events."""

    @abstractmethod
    def request(self, provider: str, **data: Any) -> None:
        """A provider call is about to be made."""
        pass

    @abstractmethod
    def success(self, provider: str, **data: Any) -> None:
        """A provider produced a valid question."""
        pass

    @abstractmethod
    def fallback(self, provider: str, **data: Any) -> None:
        """A provider attempt failed and generation moves on."""
        pass

    @abstractmethod
    def error(self, provider: str, message: str, **data: Any) -> None:
        """A provider call or the whole generation failed."""
        pass

    @abstractmethod
    def config_missing(self, provider: str, **data: Any) -> None:
        """A provider was skipped at startup for lack of credentials."""
        pass

    @abstractmethod
    def duplicate(self, provider: str, **data: Any) -> None:
        """A generated question was already in the recent-question cache."""
        pass

    @abstractmethod
    def stats(self, provider: str, **data: Any) -> None:
        """Informational provider statistics (retries, timings, resets)."""
        pass


class LoggingEventLogger(GenerationEventLogger):
    """Writes events through stdlib logging and the observability facade."""

    def __init__(
        self,
        log: Optional[logging.Logger] = None,
        facade: Optional[ObservabilityFacade] = None,
    ):
        """
        Args:
            log: Logger to write to (defaults to this module's logger)
            facade: Observability facade for metrics (defaults to the singleton)
        """
        self._log = log or logger
        self._facade = facade or observability

    def _emit(self, level: int, event: str, provider: str, message: str, data: dict) -> None:
        self._log.log(
            level,
            f"[{provider}] {message}",
            extra={"event": event, "provider": provider, "event_data": data},
        )

    def request(self, provider: str, **data: Any) -> None:
        self._emit(logging.DEBUG, "request", provider, "Provider request", data)
        self._facade.record_metric(
            "trivia.provider.requests", 1, labels={"provider": provider}
        )

    def success(self, provider: str, **data: Any) -> None:
        self._emit(logging.INFO, "success", provider, "Question generated", data)
        self._facade.record_metric(
            "trivia.provider.successes", 1, labels={"provider": provider}
        )
        duration_ms = data.get("duration_ms")
        if duration_ms is not None:
            self._facade.record_metric(
                "trivia.provider.latency",
                duration_ms,
                labels={"provider": provider},
                metric_type="histogram",
                unit="ms",
            )

    def fallback(self, provider: str, **data: Any) -> None:
        self._emit(
            logging.WARNING,
            "fallback",
            provider,
            f"Attempt {data.get('attempt', '?')} failed, falling back: "
            f"{data.get('error', 'unknown error')}",
            data,
        )
        self._facade.record_metric(
            "trivia.provider.failures", 1, labels={"provider": provider}
        )

    def error(self, provider: str, message: str, **data: Any) -> None:
        self._emit(logging.ERROR, "error", provider, message, data)
        exception = data.get("exception")
        if isinstance(exception, BaseException):
            context = {k: v for k, v in data.items() if k != "exception"}
            context["provider"] = provider
            self._facade.capture_error(exception, context=context)

    def config_missing(self, provider: str, **data: Any) -> None:
        self._emit(
            logging.WARNING,
            "config-missing",
            provider,
            "API key not configured, provider disabled",
            data,
        )

    def duplicate(self, provider: str, **data: Any) -> None:
        self._emit(
            logging.INFO,
            "duplicate",
            provider,
            f"Possible duplicate question for topic {data.get('topic')!r}",
            data,
        )
        self._facade.record_metric(
            "trivia.questions.duplicates", 1, labels={"provider": provider}
        )

    def stats(self, provider: str, **data: Any) -> None:
        self._emit(logging.DEBUG, "stats", provider, "Provider stats", data)
