"""Main library client for icon resolution."""

from __future__ import annotations

import asyncio
import functools
import logging
import weakref
from collections.abc import Iterable

from itemicons.cache.inflight import InFlightRegistry
from itemicons.cache.store import IconCache
from itemicons.config import IconSettings, get_settings
from itemicons.core.cancellation import CancellationToken
from itemicons.core.exceptions import ClientNotInitializedError
from itemicons.core.models import validate_item_id
from itemicons.core.types import OutcomeKind
from itemicons.loading.controller import FallbackUrlsFn, IconLoadController, LoadPolicy
from itemicons.resolution.base import AbstractIconResolver, ResolverConfig
from itemicons.resolution.fallback import fallback_icon_urls
from itemicons.resolution.xivapi import XivApiResolver
from itemicons.scheduling.config import SchedulerConfig
from itemicons.scheduling.scheduler import RequestScheduler, SchedulerStats
from itemicons.services.icons import IconService

logger = logging.getLogger(__name__)


class IconClient:
    """
    Main client for the itemicons library.

    Owns the single cache, in-flight registry, scheduler and resolver shared
    by every icon load in the process, and hands out load controllers to UI
    code.

    Usage:
        async with IconClient() as client:
            # Drive one displayed item
            load = client.request_resolution(4, priority=True)
            async for event in load.updates():
                ...

            # Or just get a URL
            url = await client.resolve_url(4)

    Settings are loaded from environment variables or can be passed explicitly.
    """

    def __init__(
        self,
        settings: IconSettings | None = None,
        *,
        resolver: AbstractIconResolver | None = None,
        fallback_urls: FallbackUrlsFn | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Library settings. If not provided, the cached environment settings.
            resolver: Resolver to use instead of the configured XIVAPI resolver.
            fallback_urls: Override for deterministic fallback URL derivation.
        """
        self._settings = settings or get_settings()
        self._resolver_override = resolver
        self._fallback_urls = fallback_urls or functools.partial(
            fallback_icon_urls, base_url=self._settings.icon_base_url
        )
        self._policy = LoadPolicy.from_settings(self._settings)

        self._resolver: AbstractIconResolver | None = None
        self._scheduler: RequestScheduler | None = None
        self._service: IconService | None = None
        self._controllers: weakref.WeakSet[IconLoadController] = weakref.WeakSet()

    async def __aenter__(self) -> IconClient:
        """Initialize resources on context entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Clean up resources on context exit."""
        await self.close()

    async def _initialize(self) -> None:
        """Initialize client resources."""
        self._resolver = self._resolver_override or XivApiResolver(
            ResolverConfig.from_settings(self._settings)
        )
        self._scheduler = RequestScheduler(
            self._resolver,
            SchedulerConfig.from_settings(self._settings),
        )
        await self._scheduler.start()
        self._service = IconService(IconCache(), InFlightRegistry(), self._scheduler)
        logger.info(
            f"Icon client ready ({self._scheduler.config.allowed_per_window} req/s, "
            f"{self._scheduler.config.priority_concurrency} priority slots)"
        )

    async def close(self) -> None:
        """Cancel outstanding loads and close all resources."""
        controllers = list(self._controllers)
        for controller in controllers:
            controller.cancel()
        await asyncio.gather(*(c.aclose() for c in controllers), return_exceptions=True)

        if self._service:
            self._service.cancel_all()
            self._service = None

        if self._scheduler:
            await self._scheduler.close()
            self._scheduler = None

        if self._resolver:
            await self._resolver.close()
            self._resolver = None

        logger.info("Icon client closed")

    def _ensure_initialized(self) -> IconService:
        """Ensure client is initialized."""
        if self._service is None:
            raise ClientNotInitializedError(
                "Client not initialized. Use 'async with IconClient() as client:'"
            )
        return self._service

    def request_resolution(
        self,
        item_id: int,
        *,
        priority: bool = False,
        initial_delay: float = 0.0,
    ) -> IconLoadController:
        """
        Start loading the icon for one displayed item.

        Args:
            item_id: Positive item identifier
            priority: Use the concurrent fast lane (above-the-fold items)
            initial_delay: Seconds to wait before resolving, used to spread
                many simultaneously shown items over the quota window

        Returns:
            A started load controller acting as the subscription
        """
        service = self._ensure_initialized()
        controller = IconLoadController(
            item_id,
            service,
            priority=priority,
            initial_delay=initial_delay,
            policy=self._policy,
            fallback_urls=self._fallback_urls,
        )
        self._controllers.add(controller)
        controller.start()
        return controller

    def cancel(self, subscription: IconLoadController) -> None:
        """Cancel a load started with ``request_resolution``."""
        subscription.cancel()

    async def resolve_url(
        self,
        item_id: int,
        *,
        priority: bool = False,
        token: CancellationToken | None = None,
    ) -> str | None:
        """
        Resolve an item's authoritative icon URL.

        Returns:
            The icon URL, or None when the item has no icon, the lookup
            failed or it was cancelled
        """
        service = self._ensure_initialized()
        outcome = await service.resolve(item_id, priority=priority, token=token)
        return outcome.url if outcome.kind == OutcomeKind.FOUND else None

    def cached_url(self, item_id: int) -> str | None:
        """Cached icon URL for immediate display, without any lookup."""
        if item_id is None or isinstance(item_id, bool) or not isinstance(item_id, int):
            return None
        if item_id <= 0:
            return None
        return self._ensure_initialized().peek_url(item_id)

    async def preload(self, item_ids: Iterable[int]) -> dict[int, str | None]:
        """Resolve several items in the background lane."""
        ids = list(dict.fromkeys(validate_item_id(i) for i in item_ids))
        urls = await asyncio.gather(*(self.resolve_url(i) for i in ids))
        return dict(zip(ids, urls))

    def fallback_urls(self, item_id: int) -> list[str]:
        """Candidate icon URLs computed without a lookup."""
        return self._fallback_urls(item_id)

    def cancel_items(self, item_ids: Iterable[int]) -> None:
        """Cancel in-flight lookups for specific items."""
        self._ensure_initialized().cancel(item_ids)

    def cancel_all(self) -> None:
        """Cancel every in-flight and queued lookup."""
        self._ensure_initialized().cancel_all()

    def clear_cache(self) -> None:
        """Forget every cached icon URL."""
        self._ensure_initialized().clear_cache()

    def stats(self) -> SchedulerStats:
        self._ensure_initialized()
        return self._scheduler.stats()


# Convenience function for one-off resolutions
async def resolve_icon_url(
    item_id: int,
    *,
    settings: IconSettings | None = None,
) -> str | None:
    """
    Resolve an item's icon URL (convenience function).

    For multiple resolutions, use IconClient so lookups share one cache and
    one rate limit.
    """
    async with IconClient(settings) as client:
        return await client.resolve_url(item_id)
