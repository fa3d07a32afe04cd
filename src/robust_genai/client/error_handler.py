"""Classification of provider failures into recovery classes"""  # noqa: D415

from __future__ import annotations

import math
import re

from ..constants import RATE_LIMIT_HINT_BUFFER
from ..core.types import ErrorClass, Fatal, RateLimited, Transient
from ..exceptions import AuthenticationError, MissingKeyError, RateLimitError

_AUTH_STATUS = frozenset({401, 403})
_RATE_LIMIT_STATUS = frozenset({429, 503})

_AUTH_PATTERN = re.compile(
    r"\b40[13]\b|unauthori[sz]ed|forbidden|invalid api key|api key not valid",
    re.IGNORECASE,
)
_RATE_LIMIT_PATTERN = re.compile(
    r"\b429\b|\b503\b|rate.?limit|too many requests|resource.?exhausted|overloaded|quota",
    re.IGNORECASE,
)
_WAIT_HINT_PATTERNS = (
    re.compile(r"try again in\s*(\d+(?:\.\d+)?)\s*s", re.IGNORECASE),
    re.compile(r"retry[-_ ]?after[\"':=\s]*(\d+(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"retry[-_ ]?delay[\"':=\s]*(\d+(?:\.\d+)?)\s*s", re.IGNORECASE),
)


def extract_wait_hint(message: str, *, buffer: float = RATE_LIMIT_HINT_BUFFER) -> float | None:
    """Parse a provider "try again in N s" style hint into a wait in seconds.

    The hint is rounded up to whole milliseconds and padded with ``buffer``.
    Returns None when the message carries no hint.
    """
    for pattern in _WAIT_HINT_PATTERNS:
        match = pattern.search(message)
        if match:
            seconds = math.ceil(float(match.group(1)) * 1000) / 1000
            return seconds + buffer
    return None


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


class ProviderErrorClassifier:
    """Maps any provider failure to ``Fatal``, ``RateLimited`` or ``Transient``.

    Typed errors raised by the adapters are trusted first, then HTTP-like
    status codes exposed by SDK exceptions, then the error text itself.
    """

    def __init__(self, hint_buffer: float = RATE_LIMIT_HINT_BUFFER) -> None:  # noqa: D107
        self.hint_buffer = hint_buffer

    def classify(self, error: BaseException) -> ErrorClass:
        """Classify ``error`` into its recovery class."""
        if isinstance(error, AuthenticationError | MissingKeyError):
            return Fatal(error)

        message = str(error)
        if isinstance(error, RateLimitError):
            hint = error.retry_after
            if hint is not None:
                hint += self.hint_buffer
            else:
                hint = extract_wait_hint(message, buffer=self.hint_buffer)
            return RateLimited(error, wait_hint=hint)

        status = _status_code(error)
        if status in _AUTH_STATUS or _AUTH_PATTERN.search(message):
            return Fatal(error)
        if status in _RATE_LIMIT_STATUS or _RATE_LIMIT_PATTERN.search(message):
            return RateLimited(
                error, wait_hint=extract_wait_hint(message, buffer=self.hint_buffer)
            )
        return Transient(error)


_DEFAULT_CLASSIFIER = ProviderErrorClassifier()


def classify_error(error: BaseException) -> ErrorClass:
    """Classify ``error`` with the default hint buffer."""
    return _DEFAULT_CLASSIFIER.classify(error)
