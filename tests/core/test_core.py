"""
Tests for core exceptions and clock.
"""

from datetime import datetime, timezone

from core.clock import MockClock, SystemClock
from core.exceptions import (
    APIError,
    ConfigurationError,
    ErrorClassification,
    FetchError,
    Severity,
    TaskError,
    classify_exception,
    wrap_exception,
)


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_configuration_error_context(self):
        error = ConfigurationError("bad filter", config_key="filter.collectors", actual_value="x")

        assert error.severity == Severity.CRITICAL
        assert error.to_dict()["context"] == {
            "config_key": "filter.collectors",
            "actual_value": "x",
        }

    def test_api_error_status(self):
        error = APIError("HTTP 404", url="https://api/v3/spaces", status=404)

        assert error.status == 404
        assert error.context["status"] == 404

    def test_task_error_carries_cause(self):
        cause = ValueError("bad json")
        error = TaskError("spaces", "ValueError: bad json", cause=cause)

        assert error.task == "spaces"
        assert error.context["cause_type"] == "ValueError"
        assert error.to_dict()["cause"] == "bad json"

    def test_fetch_error_message(self):
        error = FetchError(
            failed={"organizations": RuntimeError("HTTP 500")},
            aborted=["events"],
            skipped=["spaces"],
        )

        assert str(error) == "failed: organizations (HTTP 500); aborted: events; skipped: spaces"
        assert error.categories == ["events", "organizations", "spaces"]
        assert error.severity == Severity.MEDIUM
        assert FetchError(critical=True).severity == Severity.HIGH

    def test_classify_exception(self):
        assert classify_exception(ConnectionError()) == ErrorClassification.TRANSIENT
        assert classify_exception(KeyError("x")) == ErrorClassification.RECOVERABLE
        assert (
            classify_exception(ConfigurationError("x"))
            == ErrorClassification.NON_RECOVERABLE
        )

    def test_wrap_exception(self):
        wrapped = wrap_exception(TimeoutError("slow"), APIError, url="https://api")

        assert isinstance(wrapped, APIError)
        assert wrapped.message == "TimeoutError: slow"
        assert wrapped.cause is not None


class TestClock:
    """Tests for clocks."""

    def test_mock_clock(self):
        clock = MockClock(datetime(2026, 1, 1))

        assert clock.now().tzinfo == timezone.utc
        start = clock.timestamp()
        clock.advance(seconds=30)
        assert clock.timestamp() == start + 30

        clock.set_time(datetime(2026, 6, 1, tzinfo=timezone.utc))
        assert clock.now().isoformat().startswith("2026-06-01")

    def test_system_clock(self):
        clock = SystemClock()

        assert clock.now().tzinfo == timezone.utc
        assert clock.timestamp() > 0
