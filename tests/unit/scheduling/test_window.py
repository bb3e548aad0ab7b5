"""Tests for sliding-window accounting and scheduler configuration."""

from __future__ import annotations

import pytest

from itemicons.scheduling.config import SchedulerConfig
from itemicons.scheduling.window import WINDOW_EDGE_MARGIN, SlidingWindow


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestSlidingWindow:
    """Tests for the trailing-window counter."""

    def test_free_until_limit(self, clock: FakeClock):
        """No wait should be needed below the limit."""
        window = SlidingWindow(3, 1.0, clock=clock)
        for _ in range(3):
            assert window.delay() == 0.0
            window.record()
        assert window.count == 3

    def test_full_window_waits_for_oldest(self, clock: FakeClock):
        """A full window should wait until the oldest admission expires."""
        window = SlidingWindow(3, 1.0, min_interval=0.0, clock=clock)
        window.record()
        clock.advance(0.2)
        window.record()
        window.record()

        assert window.delay() == pytest.approx(0.8 + WINDOW_EDGE_MARGIN)

    def test_wait_never_below_min_interval(self, clock: FakeClock):
        """The wait should be at least the minimum spacing."""
        window = SlidingWindow(2, 1.0, min_interval=0.5, clock=clock)
        window.record()
        clock.advance(0.99)
        window.record()

        assert window.delay() == pytest.approx(0.5)

    def test_default_min_interval(self):
        window = SlidingWindow(19, 1.0)
        assert window.min_interval == pytest.approx(1.0 / 19)

    def test_expired_admissions_are_pruned(self, clock: FakeClock):
        """Admissions older than the period should stop counting."""
        window = SlidingWindow(2, 1.0, clock=clock)
        window.record()
        window.record()
        clock.advance(1.0)

        assert window.count == 0
        assert window.delay() == 0.0

    def test_window_slides_continuously(self, clock: FakeClock):
        """Capacity should free up one admission at a time."""
        window = SlidingWindow(2, 1.0, clock=clock)
        window.record()
        clock.advance(0.5)
        window.record()
        clock.advance(0.6)

        assert window.count == 1
        assert window.delay() == 0.0

    def test_clear(self, clock: FakeClock):
        window = SlidingWindow(1, 1.0, clock=clock)
        window.record()
        window.clear()
        assert len(window) == 0
        assert window.delay() == 0.0

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            SlidingWindow(0)


class TestSchedulerConfig:
    """Tests for derived scheduler settings."""

    def test_defaults_stay_below_service_limit(self):
        """Defaults should admit 19 requests per second."""
        config = SchedulerConfig()
        assert config.allowed_per_window == 19
        assert config.min_interval == pytest.approx(1.0 / 19)

    def test_backoff_doubles_to_ceiling(self):
        """Backoff should double per violation and cap at the maximum."""
        config = SchedulerConfig()
        assert [config.backoff_for(n) for n in range(1, 6)] == [2.0, 4.0, 8.0, 10.0, 10.0]

    def test_from_settings(self, test_settings):
        config = SchedulerConfig.from_settings(test_settings)
        assert config.quota_backoff_initial == test_settings.quota_backoff_initial
        assert config.max_quota_retries == test_settings.max_quota_retries

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"rate_limit_per_second": 1, "safety_margin": 1},
            {"window_seconds": 0},
            {"priority_concurrency": 0},
        ],
    )
    def test_invalid_values(self, kwargs: dict):
        with pytest.raises(ValueError):
            SchedulerConfig(**kwargs)
