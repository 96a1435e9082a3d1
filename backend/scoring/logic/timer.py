"""
Per-turn countdown for rummy games.

The countdown mutates the ``TimerState`` stored inside the game record, one
second per tick, and fires a time-up callback when it reaches zero. At most
one tick task exists per countdown: starting a running countdown is a no-op.
Stopping cancels the task and keeps the remaining seconds.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from scoring.logic.exceptions import ScoreKeeperError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from scoring.logic.models import TimerState

logger = structlog.get_logger()

TICK_SECONDS = 1.0


class TurnCountdown:
    """Cancellable one-second countdown over a game's ``TimerState``."""

    def __init__(
        self,
        state: TimerState,
        on_time_up: Callable[[], None] | None = None,
        *,
        tick_seconds: float = TICK_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._state = state
        self._on_time_up = on_time_up
        self._tick_seconds = tick_seconds
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def remaining(self) -> int:
        return self._state.remaining

    def start(self) -> bool:
        """Start ticking. Returns whether a tick task was started.

        Returns False if the countdown is already running, or if there is no
        running event loop to tick on, in which case it stays stopped.
        """
        if self._task is not None and not self._task.done():
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("countdown not started, no running event loop", remaining=self._state.remaining)
            return False
        self._state.running = True
        self._task = loop.create_task(self._run())
        logger.debug("countdown started", remaining=self._state.remaining)
        return True

    def stop(self) -> None:
        """Stop ticking, preserving the remaining seconds."""
        self._cancel()
        self._state.running = False

    def toggle(self) -> bool:
        """Flip between running and stopped. Returns the new running flag."""
        if self._task is not None and not self._task.done():
            self.stop()
        else:
            self.start()
        return self._state.running

    def reset(self) -> None:
        self._state.remaining = self._state.total_time

    def tick(self) -> int:
        """Advance the countdown by one second and return the remaining seconds.

        A tick at zero stops the countdown and fires the time-up callback,
        so the player gets the full last second. Ticking a stopped countdown
        changes nothing.
        """
        if not self._state.running:
            return self._state.remaining
        if self._state.remaining > 0:
            self._state.remaining -= 1
        else:
            self._expire()
        return self._state.remaining

    def _expire(self) -> None:
        self._state.running = False
        current = asyncio.current_task() if _loop_running() else None
        if self._task is not None and self._task is not current:
            self._cancel()
        logger.info("turn time is up")
        if self._on_time_up is None:
            return
        try:
            self._on_time_up()
        except (ScoreKeeperError, RuntimeError, OSError, ValueError):  # fmt: skip
            logger.exception("time up callback failed")

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        try:
            while self._state.running:
                await self._sleep(self._tick_seconds)
                self.tick()
        except asyncio.CancelledError:
            pass


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
