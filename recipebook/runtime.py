from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventLoopThread:
    """An asyncio event loop running in a daemon thread.

    The recipe store and view controller live on this loop. Request threads
    hand their work over with :meth:`run` or :meth:`call`, so the collection
    only ever has one writer.
    """

    def __init__(self, name: str = "recipebook-loop") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_forever, name=name, daemon=True)
        self._thread.start()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def _run_forever(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Run a coroutine on the loop and block until it returns."""

        future = asyncio.run_coroutine_threadsafe(_as_coroutine(awaitable), self._loop)
        return future.result(timeout)

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a plain callable on the loop thread and return its result."""

        async def _invoke() -> T:
            return func(*args, **kwargs)

        return self.run(_invoke())

    def stop(self) -> None:
        if self._loop.is_closed():
            return
        # Joins the worker threads used by asyncio.to_thread.
        self.run(self._loop.shutdown_default_executor())
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()
        logger.debug("Event loop thread %s stopped.", self._thread.name)


async def _as_coroutine(awaitable: Awaitable[T]) -> T:
    return await awaitable


__all__ = ["EventLoopThread"]
