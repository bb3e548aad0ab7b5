"""Core enums and type definitions."""

from enum import StrEnum


class OutcomeKind(StrEnum):
    """Classification of a single icon resolution attempt."""

    FOUND = "found"
    NOT_FOUND = "not_found"  # Authoritative absence, cacheable
    TRANSIENT = "transient"  # Network error, timeout, malformed body
    QUOTA_EXCEEDED = "quota_exceeded"  # HTTP 429 from the remote service
    CANCELLED = "cancelled"


class LoadState(StrEnum):
    """States of a per-consumer icon load."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    RESOLVING = "resolving"

    # Settled, but a render failure can still move these along
    SUCCESS = "success"
    FALLBACK = "fallback"

    # Terminal
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LoadState.FAILED, LoadState.CANCELLED)

    @property
    def is_displayable(self) -> bool:
        return self in (LoadState.SUCCESS, LoadState.FALLBACK)
