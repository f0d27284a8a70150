"""Tests for the observability facade."""

from unittest.mock import MagicMock, patch

import pytest

from trivia_service.config import Settings
from trivia_service.observability import ObservabilityFacade, setup_observability


@pytest.fixture
def facade() -> ObservabilityFacade:
    return ObservabilityFacade()


class TestRecordMetric:
    """Tests for ObservabilityFacade.record_metric."""

    def test_counter_created_once(self, facade):
        meter = MagicMock()
        with patch("trivia_service.observability.metrics.get_meter", return_value=meter):
            facade.record_metric("trivia.provider.requests", 1, labels={"provider": "openai"})
            facade.record_metric("trivia.provider.requests", 2, labels={"provider": "groq"})

        meter.create_counter.assert_called_once()
        counter = meter.create_counter.return_value
        assert counter.add.call_count == 2
        counter.add.assert_called_with(2, attributes={"provider": "groq"})

    def test_histogram(self, facade):
        meter = MagicMock()
        with patch("trivia_service.observability.metrics.get_meter", return_value=meter):
            facade.record_metric(
                "trivia.provider.latency", 250.0, metric_type="histogram", unit="ms"
            )

        meter.create_histogram.assert_called_once()
        meter.create_histogram.return_value.record.assert_called_once_with(
            250.0, attributes={}
        )

    def test_unsupported_type_ignored(self, facade):
        meter = MagicMock()
        with patch("trivia_service.observability.metrics.get_meter", return_value=meter):
            facade.record_metric("x", 1, metric_type="gauge")

        meter.create_counter.assert_not_called()
        meter.create_histogram.assert_not_called()

    def test_works_without_sdk(self, facade):
        """Test that the no-op API meter accepts values."""
        facade.record_metric("trivia.test.counter", 1)
        facade.record_metric("trivia.test.latency", 1.5, metric_type="histogram")


class TestCaptureError:
    """Tests for ObservabilityFacade.capture_error."""

    def test_disabled_without_dsn(self, facade):
        with patch("trivia_service.observability.sentry_sdk") as mock_sentry:
            assert facade.capture_error(RuntimeError("boom")) is None
            mock_sentry.capture_exception.assert_not_called()

    def test_captures_with_context(self, facade):
        with patch("trivia_service.observability.sentry_sdk") as mock_sentry:
            mock_sentry.capture_exception.return_value = "event-id"
            facade.init(sentry_dsn="https://key@example.invalid/1", environment="test")

            error = RuntimeError("boom")
            event_id = facade.capture_error(error, context={"provider": "openai"})

        assert event_id == "event-id"
        mock_sentry.init.assert_called_once_with(
            dsn="https://key@example.invalid/1", environment="test"
        )
        scope = mock_sentry.new_scope.return_value.__enter__.return_value
        scope.set_extra.assert_called_once_with("provider", "openai")
        mock_sentry.capture_exception.assert_called_once_with(error)


class TestSetupObservability:
    """Tests for setup_observability."""

    def test_sentry_dsn_from_settings(self, facade):
        """Test that the DSN and environment come from the given settings."""
        config = Settings(
            _env_file=None, sentry_dsn="https://key@example.invalid/2", env="staging"
        )
        with patch("trivia_service.observability.sentry_sdk") as mock_sentry:
            result = setup_observability(config, facade=facade)

        assert result is facade
        assert facade.is_initialized
        mock_sentry.init.assert_called_once_with(
            dsn="https://key@example.invalid/2", environment="staging"
        )

    def test_no_dsn_leaves_sentry_disabled(self, facade):
        config = Settings(_env_file=None, sentry_dsn=None)
        with patch("trivia_service.observability.sentry_sdk") as mock_sentry:
            setup_observability(config, facade=facade)
            assert facade.capture_error(RuntimeError("boom")) is None

        mock_sentry.init.assert_not_called()
        mock_sentry.capture_exception.assert_not_called()
