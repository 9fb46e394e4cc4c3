"""Debounce timer and generation token shared by the search and resolution services."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class Generation:
    """Monotonic token used to tell current responses from superseded ones."""

    def __init__(self) -> None:
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def advance(self) -> int:
        self._value += 1
        return self._value

    def is_current(self, token: int) -> bool:
        return token == self._value


class Debouncer:
    """Runs an async callback once input has been quiet for ``delay`` seconds.

    At most one timer is pending at any time: ``schedule`` cancels the previous
    timer before starting a new one. Once a timer fires, the callback runs as
    its own task, so a later ``schedule`` or ``cancel`` never aborts a lookup
    that is already in flight.
    """

    def __init__(self, delay: float, callback: Callable[..., Awaitable[Any]]):
        self.delay = delay
        self._callback = callback
        self._timer: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def schedule(self, *args: Any) -> None:
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_fire(args))

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _wait_then_fire(self, args: tuple) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._callback(*args))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def drain(self) -> None:
        """Wait for callbacks that already fired."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def aclose(self) -> None:
        self.cancel()
        for task in list(self._running):
            task.cancel()
        await self.drain()
