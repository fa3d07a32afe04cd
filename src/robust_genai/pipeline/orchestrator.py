"""Robust provider calls: throttling, retry, backoff and self-healing.

``RobustCaller.robust_call`` drives one logical call through at most
``max_retries + 1`` provider attempts:

- Every attempt waits for its turn at the process-wide ``ThrottleGate``.
- Provider failures are classified. Fatal ones (rejected credentials) are
  raised at once; rate limits pause the whole gate and back off; anything
  else waits a short fixed delay.
- JSON replies are validated against the stage contract. An invalid reply
  with attempts left triggers a self-healing retry whose prompt lists the
  structural defects. On the final attempt, a reply that parsed into
  something usable is accepted as partial instead of raising.
- Text replies are accepted whenever they are non-blank.

Every accepted reply is written to the trace sink; sink failures are logged
and never affect the call.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import TYPE_CHECKING, Any, Literal

from robust_genai.client.configuration import RetryPolicy
from robust_genai.client.error_handler import ProviderErrorClassifier
from robust_genai.client.throttle import ThrottleGate, get_default_gate
from robust_genai.constants import DEFAULT_MAX_RETRIES
from robust_genai.core.stages import Stage
from robust_genai.core.types import (
    Failure,
    Fatal,
    ProviderRequest,
    RateLimited,
    Result,
    RetryContext,
    Success,
    TraceRecord,
    Transient,
)
from robust_genai.exceptions import (
    EmptyResponseError,
    IncompleteResponseError,
    RetriesExhaustedError,
)
from robust_genai.response.validator import StageValidator
from robust_genai.telemetry import TelemetryContext
from robust_genai.trace import NullTraceSink

if TYPE_CHECKING:
    from robust_genai.config import FrozenConfig
    from robust_genai.pipeline.adapters.base import ProviderAdapter
    from robust_genai.telemetry import TelemetryContextProtocol
    from robust_genai.trace import TraceSink

log = logging.getLogger(__name__)

# --- Telemetry scopes/keys ---
T_ROBUST_CALL = "robust_call"
T_ATTEMPT = "attempt"
T_RATE_LIMITED = "rate_limited"
T_TRANSIENT = "transient"
T_SELF_HEAL = "self_heal"
T_PARTIAL_ACCEPT = "partial_accept"


class RobustCaller:
    """Runs provider calls through the throttle, retry and validation loop."""

    def __init__(
        self,
        adapter: ProviderAdapter,
        *,
        gate: ThrottleGate | None = None,
        trace_sink: TraceSink | None = None,
        validator: StageValidator | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        config: FrozenConfig | None = None,
        classifier: ProviderErrorClassifier | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """Wire the caller's collaborators.

        Args:
            adapter: Provider backend performing single completions.
            gate: Throttle gate; defaults to the process-wide gate.
            trace_sink: Audit sink for accepted replies; defaults to a null sink.
            validator: Stage validator; defaults to the built-in catalogue.
            telemetry: Telemetry context; defaults to the no-op context.
            config: Resolved configuration supplying retry timings, the
                default retry count and the shared gate cooldown.
            classifier: Error classifier; defaults to one using the
                configured hint buffer.
            sleep: Async sleep used for backoff waits.
        """
        policy = RetryPolicy.from_config(config) if config else RetryPolicy()
        self._adapter = adapter
        self._gate = gate or get_default_gate(
            config.cooldown_seconds if config else None
        )
        self._trace_sink: TraceSink = trace_sink or NullTraceSink()
        self._validator = validator or StageValidator()
        self._telemetry: TelemetryContextProtocol = telemetry or TelemetryContext()
        self._policy = policy
        self._classifier = classifier or ProviderErrorClassifier(policy.hint_buffer)
        self._sleep = sleep
        self._max_retries = config.max_retries if config else DEFAULT_MAX_RETRIES

    @property
    def gate(self) -> ThrottleGate:
        """The throttle gate this caller waits on."""
        return self._gate

    async def robust_call(
        self,
        stage: Stage | str,
        prompt: str,
        system_instruction: str | None = None,
        *,
        is_json: bool = True,
        max_retries: int | None = None,
        on_chunk: Callable[[str], None] | None = None,
        model_override: str | None = None,
    ) -> Any:
        """Call the provider until a structurally valid reply is obtained.

        Args:
            stage: Output contract the reply is validated against.
            prompt: The caller's prompt; never modified on the first attempt.
            system_instruction: Optional system prompt, forwarded unchanged.
            is_json: Validate as JSON for ``stage`` (True) or accept raw text.
            max_retries: Retries after the first attempt; defaults to the
                configured value.
            on_chunk: Receives streamed chunks as they arrive.
            model_override: Model to use instead of the adapter default.

        Returns:
            The validated (possibly partial, default-filled) dict for JSON
            calls, or the reply string for text calls.

        Raises:
            AuthenticationError: Credentials were rejected (no retry).
            RetriesExhaustedError: Every attempt failed without usable data.
            ValueError: ``stage`` is not a known stage, or ``prompt`` is blank.
        """
        ctx = RetryContext(
            stage=Stage.parse(stage),
            prompt=prompt,
            max_retries=self._max_retries if max_retries is None else max_retries,
        )
        last_error: BaseException | None = None

        with self._telemetry(T_ROBUST_CALL, stage=ctx.stage.value) as tele:
            while True:
                request = ProviderRequest(
                    prompt=ctx.current_prompt,
                    system_instruction=system_instruction,
                    json_mode=is_json,
                    model_override=model_override,
                    on_chunk=on_chunk,
                )
                with tele(T_ATTEMPT, attempt=ctx.attempt):
                    outcome = await self._attempt(request)

                match outcome:
                    case Failure(error=error):
                        classified = self._classifier.classify(error)
                        if isinstance(classified, Fatal):
                            log.error(
                                "Fatal provider error for %s: %s", ctx.stage.value, error
                            )
                            raise error
                        last_error = error
                        # The gate is paused even on the last attempt so other
                        # callers back off too.
                        delay = self._backpressure(classified, ctx, tele)
                        if ctx.is_final:
                            break
                        await self._sleep(delay)
                        ctx = ctx.next_attempt()

                    case Success(value=raw) if not is_json:
                        await self._trace(ctx, request, raw, kind="text", partial=False)
                        return raw

                    case Success(value=raw):
                        result = self._validator.validate(ctx.stage, raw)
                        if result.is_valid:
                            await self._trace(ctx, request, raw, partial=result.is_partial)
                            return result.data

                        last_error = IncompleteResponseError(
                            ctx.stage.value, result.missing_fields
                        )
                        if ctx.is_final:
                            if result.has_payload:
                                log.warning(
                                    "Accepting partial %s result after %d attempt(s); missing: %s",
                                    ctx.stage.value,
                                    ctx.attempt + 1,
                                    ", ".join(sorted(result.missing_fields)),
                                )
                                tele.count(T_PARTIAL_ACCEPT)
                                await self._trace(ctx, request, raw, partial=True)
                                return result.data
                            break

                        log.warning(
                            "Self-healing retry %d/%d for %s; missing: %s",
                            ctx.attempt + 1,
                            ctx.max_retries,
                            ctx.stage.value,
                            ", ".join(sorted(result.missing_fields)),
                        )
                        tele.count(T_SELF_HEAL)
                        ctx = ctx.with_feedback(result.missing_fields)

        log.error(
            "AI generation failed for %s after %d attempt(s)",
            ctx.stage.value,
            ctx.total_attempts,
        )
        raise RetriesExhaustedError(
            ctx.stage.value, ctx.total_attempts, last_error
        ) from last_error

    # --- Internal helpers ---

    async def _attempt(self, request: ProviderRequest) -> Result[str, Exception]:
        """Wait for a gate slot and perform one provider call."""
        await self._gate.acquire()
        try:
            raw = await self._adapter.send_completion(request)
        except Exception as e:
            return Failure(e)
        if not request.json_mode and not (raw or "").strip():
            return Failure(EmptyResponseError("Empty response"))
        return Success(raw or "")

    def _backpressure(
        self,
        classified: RateLimited | Transient,
        ctx: RetryContext,
        tele: Any,
    ) -> float:
        """Apply the effects of a retryable failure and return the wait before retrying."""
        match classified:
            case RateLimited(wait_hint=hint):
                delay = self._policy.rate_limit_delay(ctx.attempt, hint)
                log.info(
                    "Rate limited on %s (attempt %d); pausing all calls for %.2fs",
                    ctx.stage.value,
                    ctx.attempt + 1,
                    delay,
                )
                tele.count(T_RATE_LIMITED)
                self._gate.block(delay)
                return delay
            case Transient(error=error):
                log.warning(
                    "Transient provider error on %s (attempt %d): %s",
                    ctx.stage.value,
                    ctx.attempt + 1,
                    error,
                )
                tele.count(T_TRANSIENT)
                return self._policy.transient_delay

    async def _trace(
        self,
        ctx: RetryContext,
        request: ProviderRequest,
        raw: str,
        *,
        kind: Literal["json", "text"] = "json",
        partial: bool,
    ) -> None:
        """Write an accepted reply to the trace sink (best effort)."""
        record = TraceRecord(
            prompt=request.prompt,
            response=raw,
            model=request.model_override or getattr(self._adapter, "model", "unknown"),
            stage=ctx.stage.value,
            attempt=ctx.attempt,
            kind=kind,
            partial=partial,
        )
        try:
            await self._trace_sink.log_trace(record)
        except Exception as e:
            log.warning(
                "Trace sink failed for %s: %s", ctx.stage.value, e, exc_info=True
            )


# --- Module-level convenience ---

_default_caller: RobustCaller | None = None


def get_default_caller() -> RobustCaller:
    """Caller built from resolved configuration and the process-wide gate."""
    global _default_caller  # noqa: PLW0603
    if _default_caller is None:
        from robust_genai.config import resolve_config
        from robust_genai.pipeline.adapters.registry import build_adapter

        config = resolve_config().to_frozen()
        _default_caller = RobustCaller(build_adapter(config), config=config)
    return _default_caller


async def robust_call(
    stage: Stage | str,
    prompt: str,
    system_instruction: str | None = None,
    **kwargs: Any,
) -> Any:
    """Run ``RobustCaller.robust_call`` on the default caller."""
    return await get_default_caller().robust_call(
        stage, prompt, system_instruction, **kwargs
    )
