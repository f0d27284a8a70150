"""Observability facade for the trivia question service.

Routes errors to Sentry and metrics to OpenTelemetry. Both backends are
no-ops until configured: ``sentry_sdk`` drops events when no client is
initialized, and the OpenTelemetry API hands out no-op instruments until an
SDK ``MeterProvider`` is installed by the host application.

Usage:
    from trivia_service.observability import observability, setup_observability

    setup_observability()  # reads SENTRY_DSN and ENV from settings

    observability.record_metric(
        "trivia.provider.requests",
        value=1,
        labels={"provider": "openai"},
        metric_type="counter",
    )
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Literal

import sentry_sdk
from opentelemetry import metrics

from .config import Settings, settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "trivia-question-service"


class ObservabilityFacade:
    """Single entry point for error capture and metric recording."""

    def __init__(self) -> None:
        self._sentry_enabled = False
        self._meter: Any = None
        self._counters: dict[str, Any] = {}
        self._histograms: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._meter is not None

    def init(
        self,
        sentry_dsn: str | None = None,
        environment: str = "development",
        service_name: str = SERVICE_NAME,
        service_version: str | None = None,
    ) -> None:
        """Initialize backends.

        Args:
            sentry_dsn: Sentry DSN; Sentry stays disabled when empty
            environment: Deployment environment name
            service_name: Meter name for OpenTelemetry instruments
            service_version: Optional service version
        """
        if sentry_dsn:
            sentry_sdk.init(dsn=sentry_dsn, environment=environment)
            self._sentry_enabled = True
            logger.info(f"Sentry initialized for environment {environment}")

        with self._lock:
            self._meter = metrics.get_meter(service_name, version=service_version)
            self._counters.clear()
            self._histograms.clear()

    def _get_meter(self) -> Any:
        if self._meter is None:
            self._meter = metrics.get_meter(SERVICE_NAME)
        return self._meter

    def capture_error(
        self,
        exception: BaseException,
        context: dict[str, Any] | None = None,
        level: Literal["warning", "error", "fatal"] = "error",
    ) -> str | None:
        """Send an exception to Sentry.

        Args:
            exception: The exception to capture
            context: Extra context attached to the event
            level: Sentry event level

        Returns:
            Sentry event id, or None when Sentry is disabled
        """
        if not self._sentry_enabled:
            return None

        with sentry_sdk.new_scope() as scope:
            scope.level = level
            for key, value in (context or {}).items():
                scope.set_extra(key, value)
            return sentry_sdk.capture_exception(exception)

    def record_metric(
        self,
        name: str,
        value: float | int,
        *,
        labels: dict[str, str] | None = None,
        metric_type: Literal["counter", "histogram"] = "counter",
        unit: str | None = None,
    ) -> None:
        """Record a metric value.

        Args:
            name: Metric name (e.g., "trivia.provider.requests")
            value: Metric value to record
            labels: Labels/dimensions for the metric
            metric_type: "counter" (monotonic) or "histogram" (distribution)
            unit: Unit of measurement (defaults to "1" for counters, "ms" for histograms)
        """
        attributes = labels or {}

        with self._lock:
            meter = self._get_meter()
            if metric_type == "counter":
                if name not in self._counters:
                    self._counters[name] = meter.create_counter(
                        name=name,
                        unit=unit or "1",
                        description=f"Counter for {name}",
                    )
                instrument = self._counters[name]
            elif metric_type == "histogram":
                if name not in self._histograms:
                    self._histograms[name] = meter.create_histogram(
                        name=name,
                        unit=unit or "ms",
                        description=f"Histogram for {name}",
                    )
                instrument = self._histograms[name]
            else:
                logger.warning(f"Unsupported metric type {metric_type} for {name}")
                return

        if metric_type == "counter":
            instrument.add(value, attributes=attributes)
        else:
            instrument.record(value, attributes=attributes)


# Singleton instance for application use
observability = ObservabilityFacade()


def setup_observability(
    config: Settings | None = None,
    facade: ObservabilityFacade | None = None,
) -> ObservabilityFacade:
    """Initialize the observability facade from settings.

    Args:
        config: Settings to read (the global settings when omitted)
        facade: Facade to initialize (the module singleton when omitted)

    Returns:
        The initialized facade
    """
    config = config or settings
    facade = facade or observability
    facade.init(sentry_dsn=config.sentry_dsn, environment=config.env)
    return facade
