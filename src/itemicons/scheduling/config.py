"""Scheduler configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from itemicons.config import IconSettings


@dataclass
class SchedulerConfig:
    """Configuration for the rate-limited request scheduler."""

    # Documented hard limit of the remote service
    rate_limit_per_second: int = 20
    # Admissions kept in reserve below the hard limit for clock skew
    safety_margin: int = 1
    window_seconds: float = 1.0

    # Priority lane
    priority_concurrency: int = 5
    priority_stagger: float = 0.005

    # Quota violations (HTTP 429)
    quota_backoff_initial: float = 2.0
    quota_backoff_max: float = 10.0
    max_quota_retries: int = 5

    def __post_init__(self) -> None:
        if self.allowed_per_window < 1:
            raise ValueError("rate_limit_per_second must exceed safety_margin")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if self.priority_concurrency < 1:
            raise ValueError("priority_concurrency must be at least 1")

    @property
    def allowed_per_window(self) -> int:
        """Admissions permitted within one sliding window."""
        return self.rate_limit_per_second - self.safety_margin

    @property
    def min_interval(self) -> float:
        """Minimum spacing between admissions once the window is full."""
        return self.window_seconds / self.allowed_per_window

    def backoff_for(self, consecutive_violations: int) -> float:
        """Pause length after the given number of consecutive quota violations."""
        exponent = max(consecutive_violations - 1, 0)
        return min(self.quota_backoff_initial * 2**exponent, self.quota_backoff_max)

    @classmethod
    def from_settings(cls, settings: "IconSettings") -> "SchedulerConfig":
        return cls(
            rate_limit_per_second=settings.rate_limit_per_second,
            safety_margin=settings.rate_limit_safety_margin,
            priority_concurrency=settings.priority_concurrency,
            priority_stagger=settings.priority_stagger,
            quota_backoff_initial=settings.quota_backoff_initial,
            quota_backoff_max=settings.quota_backoff_max,
            max_quota_retries=settings.max_quota_retries,
        )
