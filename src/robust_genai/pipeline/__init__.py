"""Call orchestration and provider adapters."""

from .adapters import (
    GeminiAdapter,
    MockAdapter,
    OpenAICompatAdapter,
    ProviderAdapter,
    build_adapter,
)
from .orchestrator import RobustCaller, get_default_caller, robust_call

__all__ = [
    "GeminiAdapter",
    "MockAdapter",
    "OpenAICompatAdapter",
    "ProviderAdapter",
    "RobustCaller",
    "build_adapter",
    "get_default_caller",
    "robust_call",
]
