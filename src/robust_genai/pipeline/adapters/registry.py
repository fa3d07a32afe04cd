"""Adapter selection from resolved configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from robust_genai.exceptions import ConfigurationError

from .gemini import GeminiAdapter
from .openai_compat import OpenAICompatAdapter

if TYPE_CHECKING:
    import httpx

    from robust_genai.config import FrozenConfig

    from .base import ProviderAdapter


def build_adapter(
    config: FrozenConfig, *, http_client: httpx.AsyncClient | None = None
) -> ProviderAdapter:
    """Build the adapter for ``config.provider``.

    Raises:
        MissingKeyError: If the provider needs a key and none is configured.
        ConfigurationError: For an unknown provider.
    """
    match config.provider:
        case "google":
            return GeminiAdapter(
                config.api_key, model=config.model, temperature=config.temperature
            )
        case "groq" | "openai":
            return OpenAICompatAdapter(
                config.api_key,
                model=config.model,
                base_url=config.base_url,
                provider=config.provider,
                temperature=config.temperature,
                timeout=config.request_timeout_seconds,
                client=http_client,
            )
        case other:
            raise ConfigurationError(f"Unsupported provider: {other!r}")
