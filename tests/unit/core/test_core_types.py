import dataclasses

import pytest

from robust_genai.core.stages import Stage
from robust_genai.core.types import (
    ProviderRequest,
    RetryContext,
    TraceRecord,
    ValidationResult,
)

pytestmark = pytest.mark.unit


class TestProviderRequest:
    def test_blank_prompt_is_a_value_error(self):
        with pytest.raises(ValueError, match="prompt: must not be blank"):
            ProviderRequest(prompt="   ")

    def test_non_string_prompt_is_a_type_error(self):
        with pytest.raises(TypeError, match="prompt"):
            ProviderRequest(prompt=None)  # type: ignore[arg-type]

    def test_streaming_follows_on_chunk(self):
        assert ProviderRequest("hi").streaming is False
        assert ProviderRequest("hi", on_chunk=lambda _c: None).streaming is True

    def test_is_immutable(self):
        request = ProviderRequest("hi")
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.prompt = "other"  # type: ignore[misc]


class TestRetryContext:
    def test_first_attempt_uses_original_prompt(self):
        ctx = RetryContext(stage=Stage.SQL_FIX, prompt="Fix this SQL", max_retries=3)
        assert ctx.current_prompt == "Fix this SQL"
        assert ctx.total_attempts == 4
        assert not ctx.is_final

    def test_feedback_amends_prompt_and_keeps_original(self):
        ctx = RetryContext(stage=Stage.SQL_FIX, prompt="Fix this SQL", max_retries=3)
        healed = ctx.with_feedback({"fixed_sql", "diff_explanation:type"})

        assert healed.attempt == 1
        assert healed.prompt == "Fix this SQL"
        assert healed.current_prompt.startswith("Fix this SQL\n\n[SELF_HEALING_FEEDBACK]\n")
        assert "Missing/Error fields: diff_explanation:type, fixed_sql." in healed.current_prompt
        assert healed.current_prompt.endswith(
            "Please fix the JSON structure and ensure all required fields are present."
        )

    def test_feedback_accumulates_one_line_per_attempt(self):
        ctx = RetryContext(stage=Stage.SQL_FIX, prompt="p", max_retries=3)
        ctx = ctx.with_feedback(["a"]).with_feedback(["b"])

        assert ctx.attempt == 2
        assert ctx.accumulated_feedback.splitlines() == [
            "Attempt 1: your previous response was invalid. Missing/Error fields: a.",
            "Attempt 2: your previous response was invalid. Missing/Error fields: b.",
        ]

    def test_next_attempt_keeps_feedback(self):
        ctx = RetryContext(stage=Stage.SQL_FIX, prompt="p", max_retries=2).with_feedback(["a"])
        assert ctx.next_attempt().accumulated_feedback == ctx.accumulated_feedback

    def test_attempt_cannot_exceed_max_retries(self):
        ctx = RetryContext(stage=Stage.SQL_FIX, prompt="p", max_retries=1).next_attempt()
        assert ctx.is_final
        with pytest.raises(ValueError, match="attempt"):
            ctx.next_attempt()

    def test_negative_retries_are_rejected(self):
        with pytest.raises(ValueError, match="max_retries"):
            RetryContext(stage=Stage.SQL_FIX, prompt="p", max_retries=-1)


class TestValidationResult:
    def test_validity_must_match_missing_fields(self):
        with pytest.raises(ValueError, match="is_valid"):
            ValidationResult(
                is_valid=True, is_partial=False, missing_fields=frozenset({"x"}), data={}
            )

    def test_invalid_result_must_be_partial(self):
        with pytest.raises(ValueError, match="partial"):
            ValidationResult(
                is_valid=False, is_partial=False, missing_fields=frozenset({"x"}), data={}
            )

    def test_data_must_be_a_dict(self):
        with pytest.raises(TypeError, match="data"):
            ValidationResult(
                is_valid=True,
                is_partial=False,
                missing_fields=frozenset(),
                data=None,  # type: ignore[arg-type]
            )


def test_trace_record_to_dict():
    record = TraceRecord(
        prompt="p", response="r", model="m", stage="sql-fix", attempt=2, partial=True
    )
    assert record.to_dict() == {
        "prompt": "p",
        "response": "r",
        "model": "m",
        "stage": "sql-fix",
        "attempt": 2,
        "kind": "json",
        "partial": True,
    }
