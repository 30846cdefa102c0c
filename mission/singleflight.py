"""
mission/singleflight.py
Memoized one-shot async loader.

The first caller starts the load; callers arriving while it is in flight
await the same task instead of starting another one. Once the load has
finished the result is cached and returned without touching the event loop.
A load that raises is not memoized, so a later call can try again.

An in-flight task belongs to the loop that started it. A caller on a
different loop (e.g. a later asyncio.run after the first loop closed with
the load unfinished) starts a fresh load on its own loop.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SingleFlight:

    def __init__(self, load: Callable[[], Awaitable[Any]], name: str = "load"):
        self._load   = load
        self._name   = name
        self._task:   Optional[asyncio.Future] = None
        self._loop:   Optional[asyncio.AbstractEventLoop] = None
        self._done   = False
        self._result: Any = None

    @property
    def done(self) -> bool:
        return self._done

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._done

    def _start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._task = loop.create_task(self._run())

    def _usable_on(self, loop: asyncio.AbstractEventLoop) -> bool:
        if self._task is None:
            return False
        if self._loop is not loop or self._task.cancelled():
            logger.debug(f"{self._name}: in-flight load belongs to another loop, restarting")
            self._task = None
            return False
        return True

    async def __call__(self) -> Any:
        if self._done:
            return self._result
        loop = asyncio.get_running_loop()
        if not self._usable_on(loop):
            self._start(loop)
        # shield: one cancelled waiter must not cancel the shared load
        return await asyncio.shield(self._task)

    def trigger(self) -> bool:
        """
        Start the load from synchronous code if nothing has started it yet.
        Needs a running event loop; returns False when none is available.
        """
        if self._done:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"{self._name}: no running event loop, lazy load deferred")
            return False
        if self._usable_on(loop):
            return False
        self._start(loop)
        return True

    async def _run(self) -> Any:
        try:
            result = await self._load()
        except Exception:
            if self._task is asyncio.current_task():
                self._task = None
            raise
        self._result = result
        self._done   = True
        return result
