"""Scripted adapter for tests and offline examples."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

from robust_genai.exceptions import ProviderError

if TYPE_CHECKING:
    from robust_genai.core.types import ProviderRequest


class MockAdapter:
    """Replays a script of replies and failures, one entry per call.

    Each script entry is either the reply text or an exception instance to
    raise. Every request is recorded in ``requests``. Once the script is
    exhausted the adapter returns ``default`` or, when that is None, raises
    ``ProviderError``.
    """

    def __init__(
        self,
        script: Iterable[str | BaseException] = (),
        *,
        model: str = "mock-model",
        default: str | None = None,
        chunk_size: int = 16,
    ) -> None:  # noqa: D107
        self._script: deque[str | BaseException] = deque(script)
        self.model = model
        self.default = default
        self.chunk_size = chunk_size
        self.requests: list[ProviderRequest] = []

    @property
    def calls(self) -> int:
        """Number of completions attempted so far."""
        return len(self.requests)

    @property
    def prompts(self) -> list[str]:
        """Prompts sent so far, in order."""
        return [r.prompt for r in self.requests]

    def enqueue(self, *entries: str | BaseException) -> None:
        """Append entries to the script."""
        self._script.extend(entries)

    async def send_completion(self, request: ProviderRequest) -> str:
        self.requests.append(request)
        if self._script:
            entry = self._script.popleft()
        elif self.default is not None:
            entry = self.default
        else:
            raise ProviderError("Mock script exhausted")

        if isinstance(entry, BaseException):
            raise entry
        if request.on_chunk is not None:
            for start in range(0, len(entry), self.chunk_size):
                request.on_chunk(entry[start : start + self.chunk_size])
        return entry
