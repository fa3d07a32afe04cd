"""Provider adapter protocol used by the call orchestrator.

Adapters are thin: they perform exactly one completion per call and translate
provider failures into the package exception hierarchy. Retrying, throttling
and validation belong to the orchestrator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from robust_genai.core.types import ProviderRequest

AUTH_STATUS = frozenset({401, 403})
RATE_LIMIT_STATUS = frozenset({429, 503})


@runtime_checkable
class ProviderAdapter(Protocol):
    """A text-generation backend.

    ``model`` names the model used when a request carries no override.
    """

    model: str

    async def send_completion(self, request: ProviderRequest) -> str:
        """Perform one completion and return the full reply text.

        When ``request.on_chunk`` is set, streamed chunks are forwarded to it
        in order while the full text is accumulated.

        Raises:
            AuthenticationError: Credentials were rejected.
            RateLimitError: The provider throttled or is overloaded.
            ProviderError: Any other non-success response.
        """
        ...


def provider_error_message(status: int | str, message: str) -> str:
    """Uniform message for provider failures."""
    return f"AI Provider Error ({status}): {message}"
