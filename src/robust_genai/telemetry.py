"""Scoped timings and counters for robust calls.

Telemetry is off unless ``ROBUST_GENAI_TELEMETRY=1`` (or ``DEBUG=1``) is set
at import time and at least one reporter is handed to ``TelemetryContext``.
Otherwise every call site talks to a shared stateless no-op, so instrumented
code pays for one attribute lookup and nothing else.

Scopes nest per task: each ``with ctx("name")`` pushes onto a context-local
path, so concurrent ``robust_call`` invocations never see each other's
scopes. Metrics recorded inside a scope are named ``outer.inner.metric``.
"""

from collections import deque
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import os
import time
from types import TracebackType
from typing import Any, Protocol, Self, runtime_checkable

log = logging.getLogger(__name__)

_active_scopes: ContextVar[tuple[str, ...]] = ContextVar("robust_genai_scopes", default=())

_TELEMETRY_ENABLED = (
    os.getenv("ROBUST_GENAI_TELEMETRY") == "1" or os.getenv("DEBUG") == "1"
)


@runtime_checkable
class TelemetryReporter(Protocol):
    """Anything that can receive timings and metrics."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


def _position(path: tuple[str, ...]) -> dict[str, Any]:
    # Where a record sits relative to the enclosing scopes.
    return {"depth": len(path), "parent_scope": ".".join(path) or None}


@dataclass(frozen=True, slots=True)
class _NoOpTelemetryContext:
    def __call__(self, name: str, **metadata: Any) -> Self:  # noqa: ARG002
        return self

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        pass

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass

    def gauge(self, name: str, value: float, **metadata: Any) -> None:
        pass


class _EnabledTelemetryContext:
    """Forwards scope timings and metrics to every reporter it holds.

    A reporter that raises is logged and skipped; the instrumented call
    never sees the failure.
    """

    __slots__ = ("reporters",)

    def __init__(self, *reporters: TelemetryReporter):
        self.reporters = reporters

    def __call__(
        self, name: str, **metadata: Any
    ) -> AbstractContextManager["_EnabledTelemetryContext"]:
        if not isinstance(name, str) or not name:
            raise ValueError(f"Telemetry scope name must be a non-empty string, got {name!r}")
        return self._scope(name, metadata)

    @contextmanager
    def _scope(
        self, name: str, metadata: dict[str, Any]
    ) -> Iterator["_EnabledTelemetryContext"]:
        outer = _active_scopes.get()
        token = _active_scopes.set((*outer, name))
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed = time.perf_counter() - started
            _active_scopes.reset(token)
            self._emit(
                "record_timing",
                ".".join((*outer, name)),
                elapsed,
                {**_position(outer), **metadata},
            )

    def _emit(self, kind: str, scope: str, value: Any, metadata: dict[str, Any]) -> None:
        for reporter in self.reporters:
            try:
                getattr(reporter, kind)(scope, value, **metadata)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed on %s: %s",
                    type(reporter).__name__,
                    scope,
                    e,
                    exc_info=True,
                )

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        """Record ``value`` under ``name`` inside the current scope."""
        path = _active_scopes.get()
        self._emit(
            "record_metric", ".".join((*path, name)), value, {**_position(path), **metadata}
        )

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        self.metric(name, increment, metric_type="counter", **metadata)

    def gauge(self, name: str, value: float, **metadata: Any) -> None:
        self.metric(name, value, metric_type="gauge", **metadata)


_NO_OP = _NoOpTelemetryContext()

type TelemetryContextProtocol = _EnabledTelemetryContext | _NoOpTelemetryContext


def TelemetryContext(*reporters: TelemetryReporter) -> TelemetryContextProtocol:  # noqa: N802
    """Return an enabled context, or the shared no-op when telemetry is off."""
    if not (_TELEMETRY_ENABLED and reporters):
        return _NO_OP
    return _EnabledTelemetryContext(*reporters)


class InMemoryReporter:
    """Collects timings and metrics in memory for inspection."""

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.timings.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (duration, metadata)
        )

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.metrics.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (value, metadata)
        )

    def total(self, scope: str) -> float:
        """Sum of numeric values recorded for ``scope``."""
        return sum(v for v, _ in self.metrics.get(scope, ()) if isinstance(v, int | float))

    def get_report(self) -> str:
        """Flat report of scope timings and metric totals."""
        lines = ["=== Telemetry Report ==="]
        for scope, values in sorted(self.timings.items()):
            durations = [d for d, _ in values]
            lines.append(
                f"{scope:<40} | Calls: {len(durations):<4} | "
                f"Total: {sum(durations):.4f}s"
            )
        for scope in sorted(self.metrics):
            lines.append(
                f"{scope:<40} | Count: {len(self.metrics[scope]):<4} | "
                f"Total: {self.total(scope):,.0f}"
            )
        return "\n".join(lines)


class LoggingReporter:
    """Writes every timing and metric to a logger at DEBUG level."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or log

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.logger.debug("timing %s %.4fs %s", scope, duration, metadata)

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.logger.debug("metric %s=%s %s", scope, value, metadata)
