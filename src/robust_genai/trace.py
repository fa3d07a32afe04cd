"""Write-only audit sinks for accepted provider replies.

The call layer records every terminal accept (full or partial) as a
``TraceRecord``. Sinks never feed back into the call: the orchestrator logs
and swallows any failure they raise.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from .core.types import TraceRecord

log = logging.getLogger(__name__)


@runtime_checkable
class TraceSink(Protocol):
    """Destination for audit records."""

    async def log_trace(self, record: TraceRecord) -> None:
        """Persist or forward one record."""
        ...


class NullTraceSink:
    """Discards every record."""

    async def log_trace(self, record: TraceRecord) -> None:  # noqa: ARG002
        return None


class InMemoryTraceSink:
    """Keeps records in a list, mainly for tests and notebooks."""

    def __init__(self) -> None:  # noqa: D107
        self.records: list[TraceRecord] = []

    async def log_trace(self, record: TraceRecord) -> None:
        self.records.append(record)

    def for_stage(self, stage: str) -> list[TraceRecord]:
        """Records written for ``stage``, in order."""
        return [r for r in self.records if r.stage == stage]


class LoggingTraceSink:
    """Emits one log line per record with the response truncated."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        level: int = logging.INFO,
        max_chars: int = 200,
    ) -> None:  # noqa: D107
        self.logger = logger or log
        self.level = level
        self.max_chars = max_chars

    async def log_trace(self, record: TraceRecord) -> None:
        self.logger.log(
            self.level,
            "trace stage=%s attempt=%d model=%s kind=%s partial=%s response=%r",
            record.stage,
            record.attempt,
            record.model,
            record.kind,
            record.partial,
            record.response[: self.max_chars],
        )
