"""In-memory caching and request deduplication."""

from .inflight import InFlightRegistry
from .store import IconCache

__all__ = [
    "IconCache",
    "InFlightRegistry",
]
