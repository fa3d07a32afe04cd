import logging

import pytest

from robust_genai import telemetry
from robust_genai.telemetry import (
    InMemoryReporter,
    LoggingReporter,
    TelemetryContext,
    TelemetryReporter,
    _EnabledTelemetryContext,
)

pytestmark = pytest.mark.unit


def test_disabled_context_is_the_shared_no_op(monkeypatch):
    monkeypatch.setattr(telemetry, "_TELEMETRY_ENABLED", False)

    ctx = TelemetryContext(InMemoryReporter())

    assert ctx is TelemetryContext()
    with ctx("scope") as inner:
        inner.count("anything")
        inner.gauge("g", 1.0)


def test_enabled_without_reporters_is_still_no_op(monkeypatch):
    monkeypatch.setattr(telemetry, "_TELEMETRY_ENABLED", True)
    assert not isinstance(TelemetryContext(), _EnabledTelemetryContext)


def test_enabled_with_reporter(monkeypatch):
    monkeypatch.setattr(telemetry, "_TELEMETRY_ENABLED", True)
    assert isinstance(TelemetryContext(InMemoryReporter()), _EnabledTelemetryContext)


def test_nested_scopes_build_dotted_paths():
    reporter = InMemoryReporter()
    ctx = _EnabledTelemetryContext(reporter)

    with ctx("robust_call", stage="sql-fix") as tele:
        with tele("attempt", attempt=0):
            tele.count("inside")
        tele.count("self_heal")
        tele.count("self_heal", 2)
        tele.gauge("queue", 3)

    assert set(reporter.timings) == {"robust_call", "robust_call.attempt"}
    _, meta = reporter.timings["robust_call.attempt"][0]
    assert meta["parent_scope"] == "robust_call"
    assert meta["attempt"] == 0
    assert reporter.total("robust_call.attempt.inside") == 1
    assert reporter.total("robust_call.self_heal") == 3
    _, gauge_meta = reporter.metrics["robust_call.queue"][0]
    assert gauge_meta["metric_type"] == "gauge"


def test_empty_scope_name_is_rejected():
    ctx = _EnabledTelemetryContext(InMemoryReporter())
    with pytest.raises(ValueError, match="non-empty"):
        with ctx(""):
            pass


def test_failing_reporter_is_logged_not_raised(caplog):
    class Broken:
        def record_timing(self, *args, **kwargs):
            raise RuntimeError("reporter down")

        def record_metric(self, *args, **kwargs):
            raise RuntimeError("reporter down")

    good = InMemoryReporter()
    ctx = _EnabledTelemetryContext(Broken(), good)

    with caplog.at_level(logging.ERROR, logger="robust_genai.telemetry"):
        with ctx("scope") as tele:
            tele.count("c")

    assert good.total("scope.c") == 1
    assert "Telemetry reporter 'Broken' failed" in caplog.text


def test_report_lists_scopes_and_totals():
    reporter = InMemoryReporter()
    ctx = _EnabledTelemetryContext(reporter)
    with ctx("robust_call") as tele:
        tele.count("rate_limited")

    report = reporter.get_report()
    assert report.startswith("=== Telemetry Report ===")
    assert "robust_call " in report
    assert "robust_call.rate_limited" in report


def test_logging_reporter_writes_debug_lines(caplog):
    reporter = LoggingReporter(logging.getLogger("robust_genai.test"))
    assert isinstance(reporter, TelemetryReporter)

    with caplog.at_level(logging.DEBUG, logger="robust_genai.test"):
        with _EnabledTelemetryContext(reporter)("robust_call") as tele:
            tele.count("self_heal")

    assert "metric robust_call.self_heal=1" in caplog.text
    assert "timing robust_call" in caplog.text
