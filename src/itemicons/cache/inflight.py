"""Deduplication of concurrent lookups for the same item."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from itemicons.core.cancellation import CancellationToken
from itemicons.core.exceptions import OperationCancelledError
from itemicons.core.models import ResolutionOutcome

logger = logging.getLogger(__name__)

OutcomeFactory = Callable[[CancellationToken], Awaitable[ResolutionOutcome]]


@dataclass
class _InFlight:
    task: asyncio.Task[ResolutionOutcome]
    token: CancellationToken
    waiters: int = 0


class InFlightRegistry:
    """
    Registry of lookups currently in flight, keyed by item ID.

    At most one unit of work exists per item; every caller asking for the
    same item while it runs shares its outcome. Registration happens without
    suspending, so concurrent first-time callers cannot race each other.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _InFlight] = {}

    def get_or_create(
        self,
        item_id: int,
        factory: OutcomeFactory,
    ) -> asyncio.Task[ResolutionOutcome]:
        """
        Return the shared task for ``item_id``, creating it if needed.

        Args:
            item_id: Item to look up
            factory: Called with the shared cancellation token to start
                the work when no task exists yet

        Returns:
            Task settling with the outcome of the shared lookup
        """
        return self._get_or_create(item_id, factory).task

    def _get_or_create(self, item_id: int, factory: OutcomeFactory) -> _InFlight:
        entry = self._pending.get(item_id)
        if entry is not None:
            logger.debug(f"Joining in-flight lookup for item {item_id}")
            return entry

        token = CancellationToken()
        task = asyncio.ensure_future(factory(token))
        entry = _InFlight(task=task, token=token)
        self._pending[item_id] = entry
        task.add_done_callback(lambda _: self._release(item_id, entry))
        return entry

    async def join(
        self,
        item_id: int,
        factory: OutcomeFactory,
        token: CancellationToken | None = None,
    ) -> ResolutionOutcome:
        """
        Wait for the shared lookup of ``item_id`` on behalf of one caller.

        A caller whose token fires receives a cancelled outcome while other
        callers keep waiting. When the last interested caller leaves before
        the lookup settles, the shared work is cancelled too.
        """
        if token is not None and token.cancelled:
            return ResolutionOutcome.cancelled()

        entry = self._get_or_create(item_id, factory)
        entry.waiters += 1
        try:
            if token is None:
                return await asyncio.shield(entry.task)
            return await token.run(asyncio.shield(entry.task))
        except OperationCancelledError:
            return ResolutionOutcome.cancelled()
        finally:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.task.done():
                self._abandon(item_id, entry)

    def _abandon(self, item_id: int, entry: _InFlight) -> None:
        logger.debug(f"No callers left for item {item_id}, cancelling lookup")
        if self._pending.get(item_id) is entry:
            del self._pending[item_id]
        entry.token.cancel()

    def _release(self, item_id: int, entry: _InFlight) -> None:
        if self._pending.get(item_id) is entry:
            del self._pending[item_id]

    def cancel(self, item_ids: Iterable[int]) -> None:
        """Cancel the in-flight lookups for the given items."""
        for item_id in item_ids:
            entry = self._pending.pop(item_id, None)
            if entry is not None:
                entry.token.cancel()

    def cancel_all(self) -> None:
        self.cancel(list(self._pending))

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
