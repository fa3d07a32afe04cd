"""Core data types that flow through a robust call.

This module defines the immutable data structures that describe a single
provider request, the state carried between retry attempts, the outcome of
stage validation and the classification of provider failures. Each attempt
produces new values instead of mutating shared state, which keeps the retry
loop easy to test and reason about.
"""

from __future__ import annotations

import dataclasses
import typing

from robust_genai.constants import SELF_HEALING_TAG

if typing.TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from robust_genai.core.stages import Stage

# --- Minimal guard helpers (clarity > boilerplate) ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Result Monad for explicit attempt outcomes ---


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TSuccess]:
    """A successful attempt outcome."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure[TFailure]:
    """A failed attempt outcome, containing the error."""

    error: TFailure


type Result[TSuccess, TFailure] = Success[TSuccess] | Failure[TFailure]

# --- Provider request ---


@dataclasses.dataclass(frozen=True, slots=True)
class ProviderRequest:
    """Everything a provider adapter needs for one completion attempt."""

    prompt: str
    system_instruction: str | None = None
    json_mode: bool = True
    model_override: str | None = None
    on_chunk: Callable[[str], None] | None = None

    def __post_init__(self) -> None:
        """Validate request invariants."""
        _require(
            condition=isinstance(self.prompt, str),
            message="must be a str",
            field_name="prompt",
            exc=TypeError,
        )
        _require(
            condition=self.prompt.strip() != "",
            message="must not be blank",
            field_name="prompt",
        )
        _require(
            condition=self.system_instruction is None
            or isinstance(self.system_instruction, str),
            message="must be str | None",
            field_name="system_instruction",
            exc=TypeError,
        )
        _require(
            condition=self.on_chunk is None or callable(self.on_chunk),
            message="must be callable",
            field_name="on_chunk",
            exc=TypeError,
        )

    @property
    def streaming(self) -> bool:
        """Whether chunks should be forwarded while the reply is generated."""
        return self.on_chunk is not None


# --- Retry state ---


@dataclasses.dataclass(frozen=True, slots=True)
class RetryContext:
    """Immutable per-invocation retry state.

    ``prompt`` is always the caller's original prompt. Self-healing feedback
    accumulates in ``accumulated_feedback`` and is rendered into the amended
    prompt by ``current_prompt``.
    """

    stage: Stage
    prompt: str
    max_retries: int
    attempt: int = 0
    accumulated_feedback: str = ""

    def __post_init__(self) -> None:
        """Validate retry bounds."""
        _require(
            condition=isinstance(self.max_retries, int) and self.max_retries >= 0,
            message="must be an int >= 0",
            field_name="max_retries",
        )
        _require(
            condition=0 <= self.attempt <= self.max_retries,
            message=f"must be within [0, {self.max_retries}], got {self.attempt}",
            field_name="attempt",
        )

    @property
    def is_final(self) -> bool:
        """True when no further attempt is permitted after this one."""
        return self.attempt >= self.max_retries

    @property
    def total_attempts(self) -> int:
        """Maximum number of provider invocations for this call."""
        return self.max_retries + 1

    @property
    def current_prompt(self) -> str:
        """The prompt to send on this attempt, amended with any feedback."""
        if not self.accumulated_feedback:
            return self.prompt
        return (
            f"{self.prompt}\n\n{SELF_HEALING_TAG}\n{self.accumulated_feedback}\n"
            "Please fix the JSON structure and ensure all required fields are present."
        )

    def next_attempt(self) -> RetryContext:
        """Advance to the next attempt keeping the current feedback."""
        return dataclasses.replace(self, attempt=self.attempt + 1)

    def with_feedback(self, missing_fields: Iterable[str]) -> RetryContext:
        """Advance to the next attempt, recording the structural defects seen."""
        fields = ", ".join(sorted(missing_fields)) or "unknown"
        line = (
            f"Attempt {self.attempt + 1}: your previous response was invalid. "
            f"Missing/Error fields: {fields}."
        )
        feedback = (
            f"{self.accumulated_feedback}\n{line}"
            if self.accumulated_feedback
            else line
        )
        return dataclasses.replace(
            self, attempt=self.attempt + 1, accumulated_feedback=feedback
        )


# --- Validation outcome ---


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating raw provider text against a stage contract.

    ``data`` is always a dict: keys the provider omitted are filled with
    well-typed empty defaults and listed in ``defaulted_fields``.
    ``has_payload`` is False when nothing usable could be parsed from the raw
    text, in which case ``data`` holds defaults only.
    """

    is_valid: bool
    is_partial: bool
    missing_fields: frozenset[str]
    data: dict[str, typing.Any]
    defaulted_fields: frozenset[str] = frozenset()
    has_payload: bool = True

    def __post_init__(self) -> None:
        """Enforce the validity invariant."""
        _require(
            condition=self.is_valid == (not self.missing_fields),
            message="is_valid must equal (missing_fields is empty)",
            field_name="is_valid",
        )
        _require(
            condition=isinstance(self.data, dict),
            message="must be a dict",
            field_name="data",
            exc=TypeError,
        )
        _require(
            condition=self.is_valid or self.is_partial,
            message="an invalid result is always partial",
            field_name="is_partial",
        )


# --- Throttle state snapshot ---


@dataclasses.dataclass(frozen=True, slots=True)
class ThrottleState:
    """Point-in-time view of a throttle gate, in clock seconds."""

    last_call_at: float
    paused_until: float
    queued: int = 0


# --- Error classification ---


@dataclasses.dataclass(frozen=True, slots=True)
class Fatal:
    """Unrecoverable failure (e.g. authentication). Never retried."""

    error: BaseException


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimited:
    """Provider throttling or overload; recover through a global pause."""

    error: BaseException
    wait_hint: float | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class Transient:
    """Any other failure; recover after a short fixed delay."""

    error: BaseException


ErrorClass = Fatal | RateLimited | Transient

# --- Audit trace ---


@dataclasses.dataclass(frozen=True, slots=True)
class TraceRecord:
    """A terminal accept written to the audit sink."""

    prompt: str
    response: str
    model: str
    stage: str
    attempt: int
    kind: typing.Literal["json", "text"] = "json"
    partial: bool = False

    def to_dict(self) -> dict[str, typing.Any]:
        """Plain mapping view for sinks that serialize records."""
        return dataclasses.asdict(self)
