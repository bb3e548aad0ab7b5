"""Cooperative cancellation tokens."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Cooperative cancellation signal.

    A token is threaded through every point where an icon load can suspend:
    display delays, scheduler queues, backoff timers and the HTTP call
    itself. Triggering it never interrupts code directly; waiters observe it
    through ``sleep``, ``run`` or ``wait`` and registered callbacks.

    Usage:
        token = CancellationToken()
        try:
            await token.sleep(0.5)
            response = await token.run(client.get(url))
        except OperationCancelledError:
            ...
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Trigger the token. Callbacks run once, in registration order."""
        if self._event.is_set():
            return
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        if self._event.is_set():
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless the token fires first."""
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            async with asyncio.timeout(delay):
                await self._event.wait()
        except TimeoutError:
            return
        raise OperationCancelledError("Operation cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        The awaitable is wrapped in a task; if the token wins the race the
        task is cancelled and ``OperationCancelledError`` is raised.
        """
        self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()
                await asyncio.gather(work, return_exceptions=True)

        if work.cancelled():
            raise OperationCancelledError("Operation cancelled")
        return work.result()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
