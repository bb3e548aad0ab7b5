"""In-memory icon cache with negative caching."""

from __future__ import annotations

import logging

from itemicons.core.models import ResolutionOutcome
from itemicons.core.types import OutcomeKind

logger = logging.getLogger(__name__)


class IconCache:
    """
    Process-lifetime memory of resolved item IDs.

    Only authoritative outcomes (found / not found) are stored, and an entry
    is never replaced once written. Caching "not found" keeps the pipeline
    from asking the service again for items it is known not to have.
    """

    def __init__(self) -> None:
        self._entries: dict[int, ResolutionOutcome] = {}

    def lookup(self, item_id: int) -> ResolutionOutcome | None:
        """Return the cached outcome for ``item_id``, if any."""
        return self._entries.get(item_id)

    def store(self, item_id: int, outcome: ResolutionOutcome) -> bool:
        """
        Record an outcome.

        Args:
            item_id: Item the outcome belongs to
            outcome: Outcome returned by the scheduler

        Returns:
            True if the outcome was written, False if it was ignored
        """
        if not outcome.is_authoritative:
            return False
        if item_id in self._entries:
            return False

        self._entries[item_id] = outcome
        logger.debug(f"Cached {outcome.kind} for item {item_id}")
        return True

    def peek_url(self, item_id: int) -> str | None:
        """Cached icon URL, or None when unknown or known to be missing."""
        outcome = self._entries.get(item_id)
        if outcome is None or outcome.kind != OutcomeKind.FOUND:
            return None
        return outcome.url

    def discard(self, item_id: int) -> None:
        self._entries.pop(item_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
