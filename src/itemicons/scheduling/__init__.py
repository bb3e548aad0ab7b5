"""Rate-limited admission control for icon lookups."""

from itemicons.scheduling.config import SchedulerConfig
from itemicons.scheduling.scheduler import QueueEntry, RequestScheduler, SchedulerStats
from itemicons.scheduling.window import SlidingWindow

__all__ = [
    "QueueEntry",
    "RequestScheduler",
    "SchedulerConfig",
    "SchedulerStats",
    "SlidingWindow",
]
