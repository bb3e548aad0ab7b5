"""Per-consumer icon load state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from itemicons.core.cancellation import CancellationToken
from itemicons.core.exceptions import OperationCancelledError
from itemicons.core.models import LoadEvent, ResolutionOutcome, validate_item_id
from itemicons.core.types import LoadState, OutcomeKind
from itemicons.resolution.fallback import fallback_icon_urls

if TYPE_CHECKING:
    from itemicons.config import IconSettings
    from itemicons.services.icons import IconService

logger = logging.getLogger(__name__)

FallbackUrlsFn = Callable[[int], list[str]]


@dataclass
class LoadPolicy:
    """Retry and scheduling policy for load controllers."""

    # Retries shared by transient lookups and exhausted fallbacks
    max_retries: int = 2
    # Attempt N waits (N + 1) * retry_base_delay before retrying
    retry_base_delay: float = 0.5
    # Initial delays above this mean "not yet": the load stays idle
    max_scheduled_delay: float = 3.0
    # Idle loads start on their own after this long; None waits for reveal()
    reveal_after: float | None = None

    def retry_delay(self, attempt: int) -> float:
        return (attempt + 1) * self.retry_base_delay

    @classmethod
    def from_settings(cls, settings: "IconSettings") -> "LoadPolicy":
        return cls(
            max_retries=settings.max_load_retries,
            retry_base_delay=settings.load_retry_base_delay,
            max_scheduled_delay=settings.max_scheduled_delay,
            reveal_after=settings.reveal_after,
        )


class IconLoadController:
    """
    Drives the icon of one displayed item from request to final image.

    States:
        idle → scheduled → resolving → success | fallback[i] | failed,
        and cancelled from any non-terminal state.

    The consumer starts the load, reports images that fail to render and
    cancels when it no longer needs the result. Transitions are published
    as ``LoadEvent`` values through ``updates()``.

    At most ``EVENT_BUFFER_SIZE`` unread events are kept. When a consumer
    falls behind, the oldest are dropped, so the latest state (including
    the final one) is always delivered.

    Usage:
        controller = IconLoadController(4, service, initial_delay=0.2)
        controller.start()
        async for event in controller.updates():
            show(event.url)
    """

    EVENT_BUFFER_SIZE: ClassVar[int] = 64

    def __init__(
        self,
        item_id: int,
        service: "IconService",
        *,
        priority: bool = False,
        initial_delay: float = 0.0,
        policy: LoadPolicy | None = None,
        fallback_urls: FallbackUrlsFn = fallback_icon_urls,
    ) -> None:
        self.item_id = validate_item_id(item_id)
        self.priority = priority
        self.initial_delay = max(initial_delay, 0.0)
        self.policy = policy or LoadPolicy()
        self._service = service
        self._fallback_candidates = list(fallback_urls(item_id))

        self._state = LoadState.IDLE
        self._url: str | None = None
        self._fallback_index: int | None = None
        self._attempt = 0

        self._token = CancellationToken()
        self._render_failed = asyncio.Event()
        self._changed = asyncio.Event()
        self._events: asyncio.Queue[LoadEvent] = asyncio.Queue(maxsize=self.EVENT_BUFFER_SIZE)
        self._task: asyncio.Task[None] | None = None
        self._reveal_timer: asyncio.TimerHandle | None = None

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def url(self) -> str | None:
        """URL the consumer should currently display, if any."""
        return self._url

    @property
    def fallback_index(self) -> int | None:
        return self._fallback_index

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def fallback_candidates(self) -> tuple[str, ...]:
        return tuple(self._fallback_candidates)

    @property
    def token(self) -> CancellationToken:
        return self._token

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Begin the load.

        Priority loads start immediately. Other loads wait out their initial
        delay, unless the delay exceeds ``policy.max_scheduled_delay`` in
        which case the controller stays idle until ``reveal()``, or until
        ``policy.reveal_after`` seconds pass when that is set.
        """
        if self._state is not LoadState.IDLE or self._task is not None:
            return

        if self.priority:
            self._schedule(0.0)
        elif self.initial_delay > self.policy.max_scheduled_delay:
            logger.debug(
                f"Item {self.item_id} delay {self.initial_delay:.1f}s exceeds "
                f"{self.policy.max_scheduled_delay:.1f}s, waiting to be revealed"
            )
            if self.policy.reveal_after is not None:
                self._reveal_timer = asyncio.get_running_loop().call_later(
                    self.policy.reveal_after, self.reveal
                )
        else:
            self._schedule(self.initial_delay)

    def reveal(self) -> None:
        """Start an idle load right away, e.g. once the item becomes visible."""
        self._cancel_reveal_timer()
        if self._state is LoadState.IDLE and self._task is None:
            self._schedule(0.0)

    def report_render_failure(self, url: str | None = None) -> None:
        """
        Tell the controller the displayed image failed to render.

        Args:
            url: The URL that failed; reports for a URL that is no longer
                displayed are ignored
        """
        if not self._state.is_displayable:
            return
        if url is not None and url != self._url:
            return
        self._render_failed.set()

    def cancel(self) -> None:
        """Abandon the load. No further transitions happen afterwards."""
        self._cancel_reveal_timer()
        if self._state.is_terminal:
            return
        self._token.cancel()
        self._transition(LoadState.CANCELLED)

    async def updates(self) -> AsyncIterator[LoadEvent]:
        """Yield transitions until the load fails or is cancelled."""
        while True:
            event = await self._events.get()
            yield event
            if event.state.is_terminal:
                return

    async def wait_settled(self) -> LoadState:
        """Wait until an image can be displayed or the load ended."""
        while not (self._state.is_displayable or self._state.is_terminal):
            self._changed.clear()
            await self._changed.wait()
        return self._state

    async def aclose(self) -> None:
        """Cancel the load and wait for its driver task to finish."""
        self.cancel()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _cancel_reveal_timer(self) -> None:
        if self._reveal_timer is not None:
            self._reveal_timer.cancel()
            self._reveal_timer = None

    def _schedule(self, delay: float) -> None:
        self._transition(LoadState.SCHEDULED)
        self._task = asyncio.create_task(self._drive(delay), name=f"icon-load-{self.item_id}")

    def _transition(
        self,
        state: LoadState,
        *,
        url: str | None = None,
        fallback_index: int | None = None,
    ) -> None:
        if self._state.is_terminal:
            return

        self._state = state
        self._url = url
        self._fallback_index = fallback_index
        self._render_failed.clear()

        if self._events.full():
            self._events.get_nowait()
        self._events.put_nowait(
            LoadEvent(
                item_id=self.item_id,
                state=state,
                url=url,
                fallback_index=fallback_index,
                attempt=self._attempt,
            )
        )
        self._changed.set()
        logger.debug(f"Item {self.item_id} → {state} (attempt {self._attempt})")

    async def _drive(self, delay: float) -> None:
        try:
            await self._token.sleep(delay)

            while True:
                outcome = await self._resolve()
                self._display(outcome)
                if self._state is LoadState.FAILED:
                    return

                await self._cycle_fallbacks()

                # Every candidate failed to render
                if self._attempt >= self.policy.max_retries:
                    self._fail()
                    return
                await self._token.sleep(self.policy.retry_delay(self._attempt))
                self._attempt += 1
        except OperationCancelledError:
            self._transition(LoadState.CANCELLED)

    async def _resolve(self) -> ResolutionOutcome:
        """Resolve the item, retrying transient failures with backoff."""
        while True:
            self._transition(LoadState.RESOLVING)
            outcome = await self._service.resolve(
                self.item_id,
                priority=self.priority,
                token=self._token,
            )

            if outcome.kind == OutcomeKind.CANCELLED:
                # Our token fired, or the lookup was cancelled on our behalf
                raise OperationCancelledError("Icon lookup cancelled")

            if outcome.is_retryable and self._attempt < self.policy.max_retries:
                delay = self.policy.retry_delay(self._attempt)
                logger.debug(
                    f"Transient failure for item {self.item_id} ({outcome.error}), "
                    f"retrying in {delay:.2f}s"
                )
                await self._token.sleep(delay)
                self._attempt += 1
                continue

            return outcome

    def _display(self, outcome: ResolutionOutcome) -> None:
        if outcome.kind == OutcomeKind.FOUND:
            self._transition(LoadState.SUCCESS, url=outcome.url)
        elif self._fallback_candidates:
            self._show_fallback(0)
        else:
            self._fail()

    async def _cycle_fallbacks(self) -> None:
        """Advance through fallback candidates on render failures until none remain."""
        while True:
            await self._token.run(self._render_failed.wait())
            self._render_failed.clear()

            next_index = 0 if self._state is LoadState.SUCCESS else self._fallback_index + 1
            if next_index >= len(self._fallback_candidates):
                return
            self._show_fallback(next_index)

    def _show_fallback(self, index: int) -> None:
        self._transition(
            LoadState.FALLBACK,
            url=self._fallback_candidates[index],
            fallback_index=index,
        )

    def _fail(self) -> None:
        logger.debug(f"Giving up on icon for item {self.item_id}")
        self._transition(LoadState.FAILED)

    def __repr__(self) -> str:
        return (
            f"IconLoadController(item_id={self.item_id}, state={self._state}, "
            f"attempt={self._attempt})"
        )
