"""Unit test fixtures with HTTP mocking and a scripted resolver."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any, ClassVar

import pytest
import respx

from itemicons.cache.inflight import InFlightRegistry
from itemicons.cache.store import IconCache
from itemicons.core.models import ResolutionOutcome
from itemicons.resolution.base import AbstractIconResolver, ResolverConfig
from itemicons.scheduling.config import SchedulerConfig
from itemicons.scheduling.scheduler import RequestScheduler
from itemicons.services.icons import IconService

FAKE_HOST = "https://icons.test"


# ============================================================================
# HTTP Mocking Fixtures
# ============================================================================


@pytest.fixture
def respx_mock():
    """Provide a respx mock router for HTTP mocking.

    The mock is automatically started and stopped by respx.
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


# ============================================================================
# Scripted Resolver
# ============================================================================


class FakeResolver(AbstractIconResolver):
    """Resolver answering from a script instead of the network.

    ``script`` maps item IDs to a list of outcomes (or exceptions) returned
    by successive calls; the last step repeats. Unscripted items are found.
    """

    BASE_URL: ClassVar[str] = FAKE_HOST
    ICON_BASE_URL: ClassVar[str] = FAKE_HOST

    def __init__(
        self,
        script: dict[int, list[ResolutionOutcome | Exception]] | None = None,
        *,
        delay: float = 0.0,
        gate: asyncio.Event | None = None,
        timeout: float = 5.0,
    ) -> None:
        super().__init__(ResolverConfig(timeout=timeout))
        self.script = {item_id: list(steps) for item_id, steps in (script or {}).items()}
        self.delay = delay
        self.gate = gate

        self.calls: list[int] = []
        self.call_times: list[float] = []
        self.active = 0
        self.max_active = 0
        self.cancelled_calls = 0

    @staticmethod
    def url_for(item_id: int) -> str:
        return f"{FAKE_HOST}/i/020000/{item_id:06d}.png"

    async def _fetch(self, item_id: int) -> ResolutionOutcome:
        self.calls.append(item_id)
        self.call_times.append(time.monotonic())
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            return self._next_step(item_id)
        except asyncio.CancelledError:
            self.cancelled_calls += 1
            raise
        finally:
            self.active -= 1

    def _next_step(self, item_id: int) -> ResolutionOutcome:
        steps = self.script.get(item_id)
        if not steps:
            return ResolutionOutcome.found(self.url_for(item_id))

        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def make_resolver() -> Callable[..., FakeResolver]:
    """Factory fixture building scripted resolvers."""
    def _make(*args: Any, **kwargs: Any) -> FakeResolver:
        return FakeResolver(*args, **kwargs)
    return _make


@pytest.fixture
def fake_resolver() -> FakeResolver:
    """Resolver that finds every item immediately."""
    return FakeResolver()


# ============================================================================
# Pipeline Fixtures
# ============================================================================


@pytest.fixture
async def make_service(scheduler_config: SchedulerConfig):
    """Factory fixture wiring a service around a resolver.

    Schedulers created through the factory are closed after the test.
    """
    schedulers: list[RequestScheduler] = []

    def _make(resolver: AbstractIconResolver, config: SchedulerConfig | None = None) -> IconService:
        scheduler = RequestScheduler(resolver, config or scheduler_config)
        schedulers.append(scheduler)
        return IconService(IconCache(), InFlightRegistry(), scheduler)

    yield _make

    for scheduler in schedulers:
        await scheduler.close()


@pytest.fixture
async def service(fake_resolver: FakeResolver, scheduler_config: SchedulerConfig):
    """Icon service backed by ``fake_resolver``."""
    scheduler = RequestScheduler(fake_resolver, scheduler_config)
    yield IconService(IconCache(), InFlightRegistry(), scheduler)
    await scheduler.close()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds, failing after a timeout."""
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.005)
    return _wait
