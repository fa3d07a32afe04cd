"""Adapter for OpenAI-compatible chat completion endpoints (Groq, OpenAI).

Talks to ``{base_url}/chat/completions`` with ``httpx``. Streaming replies are
read as server-sent events: ``data: {...}`` lines carrying
``choices[0].delta.content``, terminated by ``data: [DONE]``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from robust_genai.constants import DEFAULT_REQUEST_TIMEOUT, DEFAULT_TEMPERATURE
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

PROVIDER_BASE_URLS: dict[str, str] = {
    "groq": "https://api.groq.com/openai/v1",
    "openai": "https://api.openai.com/v1",
}

CHAT_COMPLETIONS_PATH = "/chat/completions"
_SSE_PREFIX = "data:"
_SSE_DONE = "[DONE]"


class OpenAICompatAdapter:
    """Single-shot chat completions over REST."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str,
        base_url: str | None = None,
        provider: str = "openai",
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create the adapter.

        Args:
            api_key: Bearer token for the endpoint.
            model: Default model for requests without an override.
            base_url: Endpoint root; defaults to the provider's public API.
            provider: ``groq`` or ``openai``; selects the default base URL.
            temperature: Sampling temperature.
            timeout: Per-request timeout in seconds (own client only).
            client: Shared ``httpx.AsyncClient``; it is not closed by the adapter.
        """
        if not api_key:
            raise MissingKeyError(
                f"An API key is required for provider {provider!r}. "
                "Set ROBUST_GENAI_API_KEY."
            )
        resolved_url = base_url or PROVIDER_BASE_URLS.get(provider)
        if not resolved_url:
            raise ValueError(f"No base_url given and no default for provider {provider!r}")
        self._api_key = api_key
        self.base_url = resolved_url.rstrip("/")
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client = client

    @property
    def endpoint(self) -> str:
        """Chat completions URL; a ``base_url`` may already name it."""
        if self.base_url.endswith(CHAT_COMPLETIONS_PATH):
            return self.base_url
        return f"{self.base_url}{CHAT_COMPLETIONS_PATH}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_body(self, request: ProviderRequest) -> dict[str, Any]:
        messages = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        messages.append({"role": "user", "content": request.prompt})
        body: dict[str, Any] = {
            "model": request.model_override or self.model,
            "messages": messages,
            "temperature": self.temperature,
            "stream": request.streaming,
        }
        # JSON mode cannot be combined with streaming on these endpoints.
        if request.json_mode and not request.streaming:
            body["response_format"] = {"type": "json_object"}
        return body

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def send_completion(self, request: ProviderRequest) -> str:
        """Perform one completion and return the reply text."""
        body = self._build_body(request)
        log.debug(
            "%s request model=%s json=%s stream=%s",
            self.provider,
            body["model"],
            request.json_mode,
            request.streaming,
        )
        try:
            async with self._session() as client:
                if request.on_chunk is not None:
                    return await self._stream(client, body, request.on_chunk)
                response = await client.post(
                    self.endpoint, json=body, headers=self._headers()
                )
                if response.is_error:
                    raise _error_from_response(response)
                return _message_content(response.json())
        except httpx.TransportError as e:
            raise ProviderError(provider_error_message("network", str(e))) from e

    async def _stream(
        self, client: httpx.AsyncClient, body: dict[str, Any], on_chunk: Any
    ) -> str:
        parts: list[str] = []
        async with client.stream(
            "POST", self.endpoint, json=body, headers=self._headers()
        ) as response:
            if response.is_error:
                await response.aread()
                raise _error_from_response(response)
            async for line in response.aiter_lines():
                line = line.strip()
                if not line.startswith(_SSE_PREFIX):
                    continue
                data = line[len(_SSE_PREFIX) :].strip()
                if data == _SSE_DONE:
                    break
                try:
                    payload = json.loads(data)
                except json.JSONDecodeError:
                    log.debug("Skipping malformed SSE line: %r", data[:80])
                    continue
                content = _delta_content(payload)
                if content:
                    parts.append(content)
                    on_chunk(content)
        return "".join(parts)


def _message_content(payload: dict[str, Any]) -> str:
    try:
        return payload["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderError(
            provider_error_message("invalid-response", f"unexpected payload shape: {e}")
        ) from e


def _delta_content(payload: dict[str, Any]) -> str | None:
    choices = payload.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content")


def _error_from_response(response: httpx.Response) -> Exception:
    status = response.status_code
    try:
        detail = response.json().get("error", {})
        text = detail.get("message") if isinstance(detail, dict) else str(detail)
    except (json.JSONDecodeError, AttributeError):
        text = None
    message = provider_error_message(status, text or response.text or response.reason_phrase)

    if status in AUTH_STATUS:
        return AuthenticationError(message)
    if status in RATE_LIMIT_STATUS:
        return RateLimitError(message, retry_after=_retry_after(response))
    return ProviderError(message, status_code=status)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
