"""asyncio timer primitives for the live-status loops.

All three keep at most one pending task: re-arming or re-triggering cancels the
previous one first, so timers never pile up.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from schoolday.logging import get_logger

log = get_logger(__name__)

Callback = Callable[[], Awaitable[None]]


async def _run_logged(name: str, callback: Callback) -> None:
    try:
        await callback()
    except asyncio.CancelledError:
        raise
    except Exception:
        log.exception("timer_callback_failed", timer=name)


class OneShotTimer:
    """A single delayed callback; arm() replaces whatever was pending."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self, delay: float, callback: Callback) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._fire(max(delay, 0.0), callback))
        log.debug("timer_armed", timer=self.name, delay=round(delay, 3))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _fire(self, delay: float, callback: Callback) -> None:
        await asyncio.sleep(delay)
        # Detach first: the callback may re-arm this timer.
        self._task = None
        await _run_logged(self.name, callback)


class Debouncer:
    """Coalesces bursts of trigger() calls into one action after a quiet period."""

    def __init__(self, delay: float, action: Callback, *, name: str = "debounce") -> None:
        self.delay = delay
        self.action = action
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run a pending action now instead of waiting out the delay."""
        if not self.pending:
            return
        self.cancel()
        await _run_logged(self.name, self.action)

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        await _run_logged(self.name, self.action)


class Ticker:
    """Calls a coroutine every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, callback: Callback, *, name: str = "ticker") -> None:
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        log.debug("ticker_started", ticker=self.name, interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        log.debug("ticker_stopped", ticker=self.name)

    async def _loop(self) -> None:
        while True:
            await _run_logged(self.name, self.callback)
            await asyncio.sleep(self.interval)
