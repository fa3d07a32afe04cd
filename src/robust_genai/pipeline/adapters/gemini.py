"""Google Gemini adapter built on the ``google-genai`` SDK."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from robust_genai.constants import DEFAULT_TEMPERATURE
from robust_genai.exceptions import (
    AuthenticationError,
    MissingKeyError,
    ProviderError,
    RateLimitError,
)

from .base import AUTH_STATUS, RATE_LIMIT_STATUS, provider_error_message

if TYPE_CHECKING:
    from robust_genai.core.types import ProviderRequest

log = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash-exp"


class GeminiAdapter:
    """Single-shot completions against the Gemini API.

    JSON requests ask the model for ``application/json`` output. Streaming
    requests use ``generate_content_stream`` and forward each text chunk.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_GEMINI_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        client: Any | None = None,
    ) -> None:
        """Create the adapter.

        Args:
            api_key: Gemini API key; required unless ``client`` is given.
            model: Default model for requests without an override.
            temperature: Sampling temperature.
            client: Pre-built ``genai.Client`` (or compatible test double).
        """
        if client is None:
            if not api_key:
                raise MissingKeyError(
                    "A Gemini API key is required. Set ROBUST_GENAI_API_KEY or GEMINI_API_KEY."
                )
            client = genai.Client(api_key=api_key)
        self._client = client
        self.model = model
        self.temperature = temperature

    def _build_config(self, request: ProviderRequest) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=request.system_instruction,
            temperature=self.temperature,
            response_mime_type="application/json" if request.json_mode else None,
        )

    async def send_completion(self, request: ProviderRequest) -> str:
        """Perform one completion and return the reply text."""
        model = request.model_override or self.model
        config = self._build_config(request)
        log.debug("Gemini request model=%s json=%s stream=%s", model, request.json_mode, request.streaming)
        try:
            if request.on_chunk is not None:
                parts: list[str] = []
                stream = await self._client.aio.models.generate_content_stream(
                    model=model, contents=request.prompt, config=config
                )
                async for chunk in stream:
                    text = chunk.text or ""
                    if text:
                        parts.append(text)
                        request.on_chunk(text)
                return "".join(parts)

            response = await self._client.aio.models.generate_content(
                model=model, contents=request.prompt, config=config
            )
            return response.text or ""
        except genai_errors.APIError as e:
            raise _translate_error(e) from e


def _translate_error(error: genai_errors.APIError) -> Exception:
    code = error.code
    # str() keeps the error details, which may carry a retry delay.
    message = provider_error_message(code, str(error))
    if code in AUTH_STATUS:
        return AuthenticationError(message)
    if code in RATE_LIMIT_STATUS:
        return RateLimitError(message)
    return ProviderError(message, status_code=code)
