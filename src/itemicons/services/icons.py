"""Icon service for orchestrating the cache → dedup → schedule flow."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from itemicons.core.cancellation import CancellationToken
from itemicons.core.exceptions import SchedulerClosedError
from itemicons.core.models import ResolutionOutcome, ResolutionRequest, validate_item_id

if TYPE_CHECKING:
    from itemicons.cache.inflight import InFlightRegistry
    from itemicons.cache.store import IconCache
    from itemicons.scheduling.scheduler import RequestScheduler

logger = logging.getLogger(__name__)


class IconService:
    """
    Service resolving item IDs with caching and deduplication.

    Orchestrates the resolution flow:
    1. Check the cache (including negative entries)
    2. Join or start the single in-flight lookup for the item
    3. Submit new lookups to the rate-limited scheduler
    4. Cache authoritative outcomes for the process lifetime
    """

    def __init__(
        self,
        cache: "IconCache",
        inflight: "InFlightRegistry",
        scheduler: "RequestScheduler",
    ) -> None:
        """
        Initialize the icon service.

        Args:
            cache: Process-wide icon cache
            inflight: Registry of lookups in flight
            scheduler: Scheduler pacing calls to the remote service
        """
        self._cache = cache
        self._inflight = inflight
        self._scheduler = scheduler
        # Items a priority caller joined before their lookup reached the scheduler
        self._promoted: set[int] = set()

    @property
    def cache(self) -> "IconCache":
        return self._cache

    @property
    def scheduler(self) -> "RequestScheduler":
        return self._scheduler

    def lookup(self, item_id: int) -> ResolutionOutcome | None:
        """Cached outcome for ``item_id`` without touching the network."""
        return self._cache.lookup(item_id)

    def peek_url(self, item_id: int) -> str | None:
        return self._cache.peek_url(item_id)

    async def resolve(
        self,
        item_id: int,
        *,
        priority: bool = False,
        token: CancellationToken | None = None,
    ) -> ResolutionOutcome:
        """
        Resolve an item's icon.

        Args:
            item_id: Positive item identifier
            priority: Use the scheduler's fast lane, moving a lookup that is
                still queued in the background lane ahead
            token: Abandons this caller's interest when triggered

        Returns:
            The cached outcome, or the outcome of the shared lookup
        """
        validate_item_id(item_id)

        if token is not None and token.cancelled:
            return ResolutionOutcome.cancelled()

        cached = self._cache.lookup(item_id)
        if cached is not None:
            logger.debug(f"Cache hit for item {item_id}: {cached.kind}")
            return cached

        async def fetch(shared_token: CancellationToken) -> ResolutionOutcome:
            request = ResolutionRequest(
                identifier=item_id,
                priority=priority or item_id in self._promoted,
                token=shared_token,
            )
            try:
                outcome = await self._scheduler.submit(request)
            except SchedulerClosedError:
                return ResolutionOutcome.cancelled()
            finally:
                self._promoted.discard(item_id)
            self._cache.store(item_id, outcome)
            return outcome

        if priority and item_id in self._inflight:
            # Priority callers never wait on background pacing
            if not self._scheduler.promote(item_id):
                self._promoted.add(item_id)

        return await self._inflight.join(item_id, fetch, token)

    def cancel(self, item_ids: Iterable[int]) -> None:
        """Cancel in-flight lookups for specific items."""
        self._inflight.cancel(item_ids)

    def cancel_all(self) -> None:
        """Cancel every in-flight lookup and drop everything queued."""
        self._inflight.cancel_all()
        self._scheduler.clear()
        self._promoted.clear()

    def clear_cache(self) -> None:
        """Forget cached outcomes and reset the scheduler's window."""
        self._cache.clear()
        self._scheduler.reset_window()
