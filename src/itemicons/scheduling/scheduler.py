"""Process-wide rate-limited scheduler for icon lookups."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict

from itemicons.core.exceptions import SchedulerClosedError
from itemicons.core.models import ResolutionOutcome, ResolutionRequest
from itemicons.core.types import OutcomeKind
from itemicons.resolution.base import AbstractIconResolver
from itemicons.scheduling.config import SchedulerConfig
from itemicons.scheduling.window import Clock, SlidingWindow

logger = logging.getLogger(__name__)


class _EntryState(Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SETTLED = "settled"


@dataclass(eq=False)
class QueueEntry:
    """A request plus the scheduler's bookkeeping for it."""

    request: ResolutionRequest
    future: asyncio.Future[ResolutionOutcome]
    enqueued_at: float
    state: _EntryState = _EntryState.QUEUED
    on_cancel: Callable[[], None] | None = field(default=None, repr=False)


class SchedulerStats(BaseModel):
    """Point-in-time view of the scheduler state."""

    model_config = ConfigDict(frozen=True)

    queued_priority: int
    queued_background: int
    active_priority: int
    active_total: int
    window_count: int
    paused_for: float
    consecutive_quota_violations: int
    admitted_total: int
    admitted_priority_total: int
    quota_violations_total: int


class RequestScheduler:
    """
    Admission control in front of an icon resolver.

    Features:
    - Sliding-window pacing that stays one request below the service limit
    - A priority lane with bounded concurrency that bypasses the window
    - At least one background admission per pass while priority work runs
    - Scheduler-wide pause with doubling backoff on quota violations
    - Immediate settlement of cancelled requests without consuming quota

    A single admission loop task makes every admission decision, so the
    window, the pause timestamp and the queues have exactly one writer.

    Usage:
        async with RequestScheduler(XivApiResolver()) as scheduler:
            outcome = await scheduler.submit(ResolutionRequest(4))
    """

    def __init__(
        self,
        resolver: AbstractIconResolver,
        config: SchedulerConfig | None = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or SchedulerConfig()
        self._resolver = resolver
        self._clock = clock
        self._window = SlidingWindow(
            self.config.allowed_per_window,
            self.config.window_seconds,
            min_interval=self.config.min_interval,
            clock=clock,
        )

        self._priority_queue: deque[QueueEntry] = deque()
        self._background_queue: deque[QueueEntry] = deque()
        self._running: set[asyncio.Task[None]] = set()
        self._active_priority = 0
        self._last_priority_admission: float | None = None

        self._paused_until = 0.0
        self._consecutive_violations = 0

        self._wakeup = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._closed = False

        # Counters
        self._admitted_total = 0
        self._admitted_priority_total = 0
        self._quota_violations_total = 0

    @property
    def resolver(self) -> AbstractIconResolver:
        return self._resolver

    @property
    def paused_until(self) -> float:
        return self._paused_until

    def submit(self, request: ResolutionRequest) -> asyncio.Future[ResolutionOutcome]:
        """
        Queue a request for admission.

        Args:
            request: Lookup to perform; its token cancels it at any point

        Returns:
            Future settling with the final outcome. Quota rejections are
            retried here and only surface once retries are exhausted.
        """
        if self._closed:
            raise SchedulerClosedError("Scheduler is closed")

        future: asyncio.Future[ResolutionOutcome] = asyncio.get_running_loop().create_future()
        if request.cancelled:
            future.set_result(ResolutionOutcome.cancelled())
            return future

        entry = QueueEntry(request=request, future=future, enqueued_at=self._clock())
        self._enqueue(entry)
        self._ensure_running()
        logger.debug(
            f"Queued item {request.identifier} "
            f"({'priority' if request.priority else 'background'})"
        )
        return future

    def promote(self, identifier: int) -> bool:
        """
        Move a queued background lookup into the priority lane.

        Returns:
            True if an entry was moved, False if none was waiting
        """
        for entry in self._background_queue:
            if entry.request.identifier == identifier and entry.state is _EntryState.QUEUED:
                break
        else:
            return False

        self._background_queue.remove(entry)
        entry.request.priority = True
        self._priority_queue.append(entry)
        self._wakeup.set()
        logger.debug(f"Promoted item {identifier} to the priority lane")
        return True

    def _queue_for(self, entry: QueueEntry) -> deque[QueueEntry]:
        return self._priority_queue if entry.request.priority else self._background_queue

    def _enqueue(self, entry: QueueEntry, *, front: bool = False) -> None:
        queue = self._queue_for(entry)
        entry.state = _EntryState.QUEUED
        if front:
            queue.appendleft(entry)
        else:
            queue.append(entry)

        if entry.on_cancel is None:
            entry.on_cancel = functools.partial(self._on_entry_cancelled, entry)
            entry.request.token.add_callback(entry.on_cancel)
        self._wakeup.set()

    def _on_entry_cancelled(self, entry: QueueEntry) -> None:
        # Running entries are cancelled through the resolver's token race
        if entry.state is not _EntryState.QUEUED:
            return
        self._queue_for(entry).remove(entry)
        self._settle(entry, ResolutionOutcome.cancelled())
        self._wakeup.set()

    def _settle(self, entry: QueueEntry, outcome: ResolutionOutcome) -> None:
        entry.state = _EntryState.SETTLED
        if entry.on_cancel is not None:
            entry.request.token.remove_callback(entry.on_cancel)

        if entry.request.cancelled and outcome.kind != OutcomeKind.CANCELLED:
            outcome = ResolutionOutcome.cancelled()
        if not entry.future.done():
            entry.future.set_result(outcome)

    # ------------------------------------------------------------------
    # Admission loop
    # ------------------------------------------------------------------

    def _ensure_running(self) -> None:
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(
                self._admission_loop(), name="itemicons-scheduler"
            )
            self._loop_task.add_done_callback(self._on_loop_done)

    def _on_loop_done(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduler admission loop crashed", exc_info=task.exception())

    def _has_queued(self) -> bool:
        return bool(self._priority_queue or self._background_queue)

    def _pause_remaining(self) -> float:
        return max(self._paused_until - self._clock(), 0.0)

    async def _admission_loop(self) -> None:
        while not self._closed:
            self._wakeup.clear()

            if not self._has_queued():
                await self._wakeup.wait()
                continue

            pause = self._pause_remaining()
            if pause > 0:
                logger.debug(f"Scheduler paused for {pause:.2f}s")
                await asyncio.sleep(pause)
                continue

            admitted = await self._admit_priority()
            background_wait = self._admit_background()

            if admitted or background_wait == 0.0:
                # Let launched calls start before the next pass
                await asyncio.sleep(0)
                continue

            await self._wait_for_wakeup(background_wait)

    async def _admit_priority(self) -> int:
        """
        Launch priority entries up to the concurrency ceiling.

        Admits at most the slots free when the pass starts, so a steady
        priority stream cannot hold the loop away from the background lane.
        """
        admitted = 0
        budget = self.config.priority_concurrency - self._active_priority
        while (
            admitted < budget
            and self._priority_queue
            and self._active_priority < self.config.priority_concurrency
            and self._pause_remaining() == 0
        ):
            stagger = self._stagger_remaining()
            if stagger > 0:
                await asyncio.sleep(stagger)
                continue

            self._launch(self._priority_queue.popleft())
            admitted += 1
        return admitted

    def _stagger_remaining(self) -> float:
        if self._last_priority_admission is None:
            return 0.0
        elapsed = self._clock() - self._last_priority_admission
        return max(self.config.priority_stagger - elapsed, 0.0)

    def _admit_background(self) -> float | None:
        """
        Launch at most one background entry.

        Returns:
            None when nothing is queued, 0.0 after an admission, otherwise
            the seconds to wait before the next admission is possible
        """
        if not self._background_queue:
            return None

        pause = self._pause_remaining()
        if pause > 0:
            return pause

        wait = self._window.delay()
        if wait > 0:
            return wait

        self._launch(self._background_queue.popleft())
        return 0.0

    async def _wait_for_wakeup(self, timeout: float | None) -> None:
        if timeout is None:
            await self._wakeup.wait()
            return
        try:
            async with asyncio.timeout(timeout):
                await self._wakeup.wait()
        except TimeoutError:
            pass

    def _launch(self, entry: QueueEntry) -> None:
        request = entry.request
        if request.cancelled:
            self._settle(entry, ResolutionOutcome.cancelled())
            return

        entry.state = _EntryState.RUNNING
        self._admitted_total += 1
        if request.priority:
            # The window paces the background lane only
            self._active_priority += 1
            self._admitted_priority_total += 1
            self._last_priority_admission = self._clock()
        else:
            self._window.record()

        logger.debug(
            f"Admitted item {request.identifier} "
            f"(attempt {request.attempt}, window {self._window.count})"
        )
        task = asyncio.create_task(self._execute(entry))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _execute(self, entry: QueueEntry) -> None:
        request = entry.request
        try:
            outcome = await self._resolver.resolve(request.identifier, request.token)
        except asyncio.CancelledError:
            self._settle(entry, ResolutionOutcome.cancelled())
            raise
        except Exception as e:
            logger.exception(f"Resolver failed for item {request.identifier}: {e}")
            outcome = ResolutionOutcome.transient(str(e))
        finally:
            if request.priority:
                self._active_priority -= 1
            self._wakeup.set()

        if outcome.kind == OutcomeKind.QUOTA_EXCEEDED:
            self._handle_quota_exceeded(entry)
            return

        self._consecutive_violations = 0
        self._settle(entry, outcome)

    def _handle_quota_exceeded(self, entry: QueueEntry) -> None:
        request = entry.request
        self._consecutive_violations += 1
        self._quota_violations_total += 1

        backoff = self.config.backoff_for(self._consecutive_violations)
        self._window.clear()
        self._paused_until = max(self._paused_until, self._clock() + backoff)
        request.attempt += 1

        if request.cancelled:
            self._settle(entry, ResolutionOutcome.cancelled())
            return

        if request.attempt >= self.config.max_quota_retries:
            logger.warning(
                f"Giving up on item {request.identifier} after "
                f"{request.attempt} quota rejections"
            )
            self._settle(entry, ResolutionOutcome.quota_exceeded())
            return

        logger.warning(
            f"Quota exceeded for item {request.identifier}, pausing for {backoff:.1f}s "
            f"(attempt {request.attempt}/{self.config.max_quota_retries})"
        )
        self._enqueue(entry, front=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def stats(self) -> SchedulerStats:
        return SchedulerStats(
            queued_priority=len(self._priority_queue),
            queued_background=len(self._background_queue),
            active_priority=self._active_priority,
            active_total=len(self._running),
            window_count=self._window.count,
            paused_for=self._pause_remaining(),
            consecutive_quota_violations=self._consecutive_violations,
            admitted_total=self._admitted_total,
            admitted_priority_total=self._admitted_priority_total,
            quota_violations_total=self._quota_violations_total,
        )

    def clear(self) -> int:
        """Settle every queued request as cancelled. Returns how many were dropped."""
        entries = [*self._priority_queue, *self._background_queue]
        self._priority_queue.clear()
        self._background_queue.clear()
        for entry in entries:
            self._settle(entry, ResolutionOutcome.cancelled())
        if entries:
            logger.info(f"Cleared {len(entries)} queued icon lookups")
        return len(entries)

    def reset_window(self) -> None:
        """Forget recent admissions, e.g. when starting a new batch."""
        self._window.clear()

    async def start(self) -> None:
        if self._closed:
            raise SchedulerClosedError("Scheduler is closed")
        self._ensure_running()

    async def close(self) -> None:
        """Stop admitting, cancel queued and running lookups."""
        if self._closed:
            return
        self._closed = True
        self.clear()

        tasks = [*self._running]
        if self._loop_task is not None:
            tasks.append(self._loop_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None

    async def __aenter__(self) -> "RequestScheduler":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
