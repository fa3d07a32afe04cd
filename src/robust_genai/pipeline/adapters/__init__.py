"""Provider adapters: Gemini, OpenAI-compatible REST endpoints and a scripted mock."""

from .base import ProviderAdapter
from .gemini import GeminiAdapter
from .mock import MockAdapter
from .openai_compat import PROVIDER_BASE_URLS, OpenAICompatAdapter
from .registry import build_adapter

__all__ = [
    "PROVIDER_BASE_URLS",
    "GeminiAdapter",
    "MockAdapter",
    "OpenAICompatAdapter",
    "ProviderAdapter",
    "build_adapter",
]
