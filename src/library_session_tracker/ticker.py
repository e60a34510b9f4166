"""
Live elapsed-time ticker for Library Session Tracker.

PURPOSE: Recompute HH:MM:SS elapsed time for every signed-in student
once per interval and hand the result to a callback.
AI CONTEXT: Read-only. The ticker never mutates the store; cancelling it
leaves nothing to clean up. The web layer runs one per websocket.

USAGE:
    ticker = ElapsedTicker(store)
    ticker.start(send_update)   # inside a running event loop
    ...
    ticker.cancel()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Protocol

from .config import Config
from .durations import format_hhmmss
from .models import ActiveSession

__all__ = ["ElapsedTicker", "elapsed_snapshot"]

logger = logging.getLogger(__name__)

TickCallback = Callable[[dict[str, str]], Awaitable[None] | None]


class _ActiveSource(Protocol):
    @property
    def active_sessions(self) -> tuple[ActiveSession, ...]: ...

    def now(self) -> datetime: ...


def elapsed_snapshot(sessions: Iterable[ActiveSession], now: datetime) -> dict[str, str]:
    """
    Map each active session id to its elapsed time as HH:MM:SS.

    Example:
        >>> elapsed_snapshot([alice], alice.time_in + timedelta(seconds=65))
        {'alice_...': '00:01:05'}
    """
    return {session.id: format_hhmmss(session.elapsed_seconds(now)) for session in sessions}


class ElapsedTicker:
    """
    Periodic elapsed-time publisher.

    Emits once immediately on start, then after every interval, until
    cancelled. The callback may be a plain function or a coroutine
    function; exceptions from it stop the ticker and are logged.
    """

    def __init__(self, source: _ActiveSource, interval: float | None = None) -> None:
        """
        Args:
            source: Anything with active_sessions and now(), normally the SessionStore.
            interval: Seconds between ticks. Default: Config.TICK_INTERVAL_SECONDS.
        """
        self.source = source
        self.interval = interval if interval is not None else Config.TICK_INTERVAL_SECONDS
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """True while the background task is alive."""
        return self._task is not None and not self._task.done()

    def snapshot(self) -> dict[str, str]:
        """Elapsed times right now, without starting the loop."""
        return elapsed_snapshot(self.source.active_sessions, self.source.now())

    def start(self, callback: TickCallback) -> asyncio.Task[None]:
        """
        Start ticking on the running event loop.

        Args:
            callback: Receives the {session_id: "HH:MM:SS"} mapping each tick.

        Returns:
            The background task.

        Raises:
            RuntimeError: If the ticker is already running, or no event
                loop is running.
        """
        if self.running:
            raise RuntimeError("Ticker is already running")
        self._task = asyncio.get_running_loop().create_task(self._run(callback))
        return self._task

    def cancel(self) -> None:
        """Stop ticking. Safe to call when not running."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, callback: TickCallback) -> None:
        try:
            while True:
                result = callback(self.snapshot())
                if inspect.isawaitable(result):
                    await result
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Elapsed ticker callback failed; stopping")
