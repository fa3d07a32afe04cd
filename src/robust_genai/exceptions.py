"""Exceptions raised by the robust-genai call layer."""  # noqa: D415

from __future__ import annotations

from collections.abc import Iterable


class RobustGenAIError(Exception):
    """Base exception for robust-genai errors"""  # noqa: D415


class ConfigurationError(RobustGenAIError):
    """Raised when configuration cannot be resolved or is invalid"""  # noqa: D415


class MissingKeyError(ConfigurationError):
    """Raised when the provider API key is missing"""  # noqa: D415


class APIError(RobustGenAIError):
    """Raised when a provider call fails"""  # noqa: D415


class AuthenticationError(APIError):
    """Raised when the provider rejects the credentials (401/403)"""  # noqa: D415


class RateLimitError(APIError):
    """Raised when the provider signals throttling or overload (429/503)."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:  # noqa: D107
        super().__init__(message)
        self.retry_after = retry_after


class ProviderError(APIError):
    """Raised for other non-success provider responses."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:  # noqa: D107
        super().__init__(message)
        self.status_code = status_code


class EmptyResponseError(APIError):
    """Raised when the provider returns no text"""  # noqa: D415


class JSONRepairError(RobustGenAIError):
    """Raised when neither direct parsing nor truncation repair yields JSON."""

    def __init__(self, message: str, *, text: str) -> None:  # noqa: D107
        super().__init__(message)
        self.text = text


class IncompleteResponseError(RobustGenAIError):
    """Raised when a response is missing fields required by its stage."""

    def __init__(self, stage: str, missing_fields: Iterable[str]) -> None:  # noqa: D107
        self.stage = stage
        self.missing_fields = tuple(sorted(missing_fields))
        super().__init__(
            f"Incomplete AI response for {stage}: {', '.join(self.missing_fields)}"
        )


class RetriesExhaustedError(RobustGenAIError):
    """Raised when every attempt failed and no usable data was produced.

    The last classified failure is available as ``__cause__``.
    """

    def __init__(self, stage: str, attempts: int, last_error: BaseException | None):  # noqa: D107
        self.stage = stage
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(
            f"AI generation failed for {stage} after {attempts} attempt(s){detail}"
        )
