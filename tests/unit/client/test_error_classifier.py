import pytest

from robust_genai.client.configuration import RetryPolicy
from robust_genai.client.error_handler import (
    ProviderErrorClassifier,
    classify_error,
    extract_wait_hint,
)
from robust_genai.config.types import FrozenConfig
from robust_genai.core.types import Fatal, RateLimited, Transient
from robust_genai.exceptions import (
    AuthenticationError,
    MissingKeyError,
    ProviderError,
    RateLimitError,
)

pytestmark = pytest.mark.unit


class _StatusError(Exception):
    def __init__(self, message: str, code: int):
        super().__init__(message)
        self.code = code


class TestExtractWaitHint:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Rate limit reached. Please try again in 7.5s.", 9.0),
            ("Please try again in 2s", 3.5),
            ("try again in 1.2345 s", 1.235 + 1.5),
            ('{"retryDelay": "12s"}', 13.5),
            ("Retry-After: 30", 31.5),
        ],
    )
    def test_hints_are_parsed_and_padded(self, message, expected):
        assert extract_wait_hint(message) == pytest.approx(expected)

    def test_custom_buffer(self):
        assert extract_wait_hint("try again in 4s", buffer=0.0) == 4.0

    def test_no_hint(self):
        assert extract_wait_hint("Too many requests") is None


class TestClassification:
    def test_authentication_errors_are_fatal(self):
        assert isinstance(classify_error(AuthenticationError("denied")), Fatal)

    def test_missing_key_is_fatal(self):
        assert isinstance(classify_error(MissingKeyError("no key")), Fatal)

    @pytest.mark.parametrize(
        "message",
        [
            "AI Provider Error (401): Unauthorized",
            "403 Forbidden",
            "Invalid API key provided",
            "API key not valid. Please pass a valid API key.",
        ],
    )
    def test_auth_messages_are_fatal(self, message):
        assert isinstance(classify_error(RuntimeError(message)), Fatal)

    @pytest.mark.parametrize("code", [401, 403])
    def test_auth_status_codes_are_fatal(self, code):
        assert isinstance(classify_error(_StatusError("denied", code)), Fatal)

    def test_rate_limit_error_uses_retry_after(self):
        classified = classify_error(RateLimitError("slow down", retry_after=4.0))
        assert isinstance(classified, RateLimited)
        assert classified.wait_hint == 5.5

    def test_rate_limit_error_falls_back_to_message_hint(self):
        classified = classify_error(RateLimitError("429: try again in 7.5s"))
        assert isinstance(classified, RateLimited)
        assert classified.wait_hint == pytest.approx(9.0)

    @pytest.mark.parametrize(
        "message",
        [
            "AI Provider Error (429): Too Many Requests",
            "503 Service Unavailable",
            "RESOURCE_EXHAUSTED: quota exceeded",
            "The model is overloaded",
            "rate limit exceeded",
        ],
    )
    def test_rate_limit_messages(self, message):
        classified = classify_error(RuntimeError(message))
        assert isinstance(classified, RateLimited)
        assert classified.wait_hint is None

    @pytest.mark.parametrize("code", [429, 503])
    def test_rate_limit_status_codes(self, code):
        assert isinstance(classify_error(_StatusError("busy", code)), RateLimited)

    def test_provider_error_status_code_is_read(self):
        assert isinstance(
            classify_error(ProviderError("upstream", status_code=503)), RateLimited
        )

    @pytest.mark.parametrize(
        "error",
        [
            ProviderError("AI Provider Error (500): boom", status_code=500),
            ConnectionError("connection reset"),
            TimeoutError("read timed out"),
        ],
    )
    def test_everything_else_is_transient(self, error):
        classified = classify_error(error)
        assert isinstance(classified, Transient)
        assert classified.error is error

    def test_auth_takes_priority_over_rate_limit_text(self):
        assert isinstance(classify_error(RuntimeError("401 quota exceeded")), Fatal)

    def test_boolean_status_attribute_is_ignored(self):
        error = _StatusError("something odd", code=True)  # type: ignore[arg-type]
        assert isinstance(classify_error(error), Transient)

    def test_classifier_uses_its_own_buffer(self):
        classifier = ProviderErrorClassifier(hint_buffer=0.5)
        classified = classifier.classify(RuntimeError("429 try again in 2s"))
        assert classified.wait_hint == 2.5


class TestRetryPolicy:
    def test_backoff_doubles_from_base(self):
        policy = RetryPolicy()
        assert [policy.backoff(n) for n in range(4)] == [2.0, 4.0, 8.0, 16.0]

    def test_backoff_is_capped(self):
        assert RetryPolicy().backoff(10) == 60.0

    def test_rate_limit_delay_prefers_larger_of_hint_and_backoff(self):
        policy = RetryPolicy()
        assert policy.rate_limit_delay(0, 9.0) == 9.0
        assert policy.rate_limit_delay(3, 9.0) == 16.0
        assert policy.rate_limit_delay(1, None) == 4.0

    def test_from_config(self):
        config = FrozenConfig(
            provider="google",
            api_key=None,
            base_url=None,
            model="gemini-2.0-flash-exp",
            max_retries=2,
            cooldown_seconds=1.0,
            backoff_base_seconds=0.5,
            backoff_ceiling_seconds=4.0,
            rate_limit_buffer_seconds=0.25,
            transient_delay_seconds=0.1,
            temperature=0.1,
            request_timeout_seconds=30.0,
        )
        policy = RetryPolicy.from_config(config)
        assert policy == RetryPolicy(
            transient_delay=0.1,
            backoff_base=0.5,
            backoff_ceiling=4.0,
            hint_buffer=0.25,
        )
