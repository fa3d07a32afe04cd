"""Process-wide throttling for provider calls"""  # noqa: D415

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
import logging
import time

from ..constants import DEFAULT_COOLDOWN_SECONDS
from ..core.types import ThrottleState

log = logging.getLogger(__name__)


class ThrottleGate:
    """Serializes provider call starts across the whole process.

    Callers are served strictly in arrival order by a single worker task that
    drains a queue of tickets. Before releasing a ticket the worker waits out
    any global pause imposed through ``block`` and the cooldown since the
    previous release, then stamps the release time. The gate spaces call
    *starts*; it does not hold a lock while the provider call runs.

    A caller cancelled while queued leaves its ticket behind; the worker
    skips it without consuming a slot.
    """

    def __init__(
        self,
        cooldown: float = DEFAULT_COOLDOWN_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ):
        """Create a gate.

        Args:
            cooldown: Minimum seconds between two consecutive releases.
            clock: Monotonic time source in seconds.
            sleep: Async sleep used while waiting; defaults to ``asyncio.sleep``.
        """
        if cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        self.cooldown = cooldown
        self._clock = clock
        self._sleep = sleep
        self._last_call_at: float | None = None
        self._paused_until = 0.0
        self._tickets: deque[asyncio.Future[None]] = deque()
        self._worker: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    # --- Acquisition ---

    async def acquire(self) -> None:
        """Suspend until it is this caller's turn to start a provider call."""
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            # Tickets from a previous event loop can never be served.
            self._tickets.clear()
            self._worker = None
            self._loop = loop

        ticket: asyncio.Future[None] = loop.create_future()
        self._tickets.append(ticket)
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain(), name="throttle-gate")
        await ticket

    @asynccontextmanager
    async def turn(self) -> AsyncIterator[None]:
        """Context manager form of ``acquire``."""
        await self.acquire()
        yield

    async def _drain(self) -> None:
        try:
            while self._tickets:
                ticket = self._tickets.popleft()
                if ticket.done():
                    continue
                await self._wait_for_turn()
                if ticket.done():
                    continue
                self._last_call_at = self._clock()
                ticket.set_result(None)
        except asyncio.CancelledError:
            for pending in self._tickets:
                if not pending.done():
                    pending.cancel()
            self._tickets.clear()
            raise

    async def _wait_for_turn(self) -> None:
        """Wait out the global pause, then the cooldown; re-check after each sleep."""
        while True:
            now = self._clock()
            if now < self._paused_until:
                pause_wait = self._paused_until - now
                log.info("Provider calls globally paused for %.2fs (rate limit)", pause_wait)
                await self._do_sleep(pause_wait)
                continue
            if self._last_call_at is not None:
                elapsed = now - self._last_call_at
                if elapsed < self.cooldown:
                    wait = self.cooldown - elapsed
                    log.info("Throttling provider call for %.2fs", wait)
                    await self._do_sleep(wait)
                    continue
            return

    async def _do_sleep(self, seconds: float) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
        else:
            await asyncio.sleep(seconds)

    # --- Backpressure ---

    def block(self, seconds: float) -> None:
        """Pause every subsequent release for at least ``seconds``.

        The pause only ever extends: an earlier, longer pause is kept.
        """
        until = self._clock() + max(seconds, 0.0)
        if until > self._paused_until:
            self._paused_until = until
            log.info("Provider calls blocked for %.2fs", seconds)

    # --- Introspection ---

    def get_remaining_time(self) -> float:
        """Seconds until a new caller could be released (pause or cooldown)."""
        now = self._clock()
        pause_remaining = max(0.0, self._paused_until - now)
        cooldown_remaining = 0.0
        if self._last_call_at is not None:
            cooldown_remaining = max(0.0, self.cooldown - (now - self._last_call_at))
        return max(pause_remaining, cooldown_remaining)

    @property
    def queued(self) -> int:
        """Number of callers still waiting for their turn."""
        return sum(1 for t in self._tickets if not t.done())

    def snapshot(self) -> ThrottleState:
        """Point-in-time view of the gate state."""
        return ThrottleState(
            last_call_at=self._last_call_at or 0.0,
            paused_until=self._paused_until,
            queued=self.queued,
        )

    def reset(self) -> None:
        """Clear both timestamps (test and session reset only)."""
        self._last_call_at = None
        self._paused_until = 0.0


_default_gate: ThrottleGate | None = None


def get_default_gate(cooldown: float | None = None) -> ThrottleGate:
    """Return the process-wide gate, creating it on first use.

    ``cooldown`` only takes effect when the gate is created. Later callers
    cannot loosen the spacing every other caller relies on; a differing
    request is logged and ignored.
    """
    global _default_gate  # noqa: PLW0603
    if _default_gate is None:
        _default_gate = ThrottleGate(
            DEFAULT_COOLDOWN_SECONDS if cooldown is None else cooldown
        )
    elif cooldown is not None and cooldown != _default_gate.cooldown:
        log.warning(
            "Shared throttle gate already uses a %.2fs cooldown; ignoring %.2fs",
            _default_gate.cooldown,
            cooldown,
        )
    return _default_gate
