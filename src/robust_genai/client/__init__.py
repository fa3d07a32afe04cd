"""Client-side resilience components: throttling, error classification, retry timing."""

from .configuration import RetryPolicy
from .error_handler import ProviderErrorClassifier, classify_error, extract_wait_hint
from .throttle import ThrottleGate, get_default_gate

__all__ = [
    "ProviderErrorClassifier",
    "RetryPolicy",
    "ThrottleGate",
    "classify_error",
    "extract_wait_hint",
    "get_default_gate",
]
