"""Sliding-window admission accounting."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable

Clock = Callable[[], float]

# Added to computed waits so an admission never lands on the window edge
WINDOW_EDGE_MARGIN = 0.01


class SlidingWindow:
    """
    Tracks admissions made within the trailing window.

    Only timestamps newer than ``now - period`` count against the limit,
    so capacity frees up continuously instead of at bucket boundaries.
    """

    def __init__(
        self,
        limit: int,
        period: float = 1.0,
        *,
        min_interval: float | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.period = period
        self.min_interval = min_interval if min_interval is not None else period / limit
        self._clock = clock
        self._timestamps: deque[float] = deque()

    def _prune(self, now: float) -> None:
        cutoff = now - self.period
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    @property
    def count(self) -> int:
        """Admissions within the current window."""
        self._prune(self._clock())
        return len(self._timestamps)

    def delay(self) -> float:
        """Seconds to wait before the next admission; 0 when a slot is free."""
        now = self._clock()
        self._prune(now)

        if len(self._timestamps) < self.limit:
            return 0.0

        until_oldest_expires = self._timestamps[0] + self.period - now
        return max(until_oldest_expires + WINDOW_EDGE_MARGIN, self.min_interval)

    def record(self) -> float:
        """Record an admission now and return its timestamp."""
        now = self._clock()
        self._timestamps.append(now)
        return now

    def clear(self) -> None:
        self._timestamps.clear()

    def __len__(self) -> int:
        return self.count
