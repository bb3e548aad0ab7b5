"""Domain models for icon resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .cancellation import CancellationToken
from .exceptions import InvalidItemIdError
from .types import LoadState, OutcomeKind


def validate_item_id(value: Any) -> int:
    """Return ``value`` if it is a positive integer item ID, else raise."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidItemIdError(f"Item ID must be an integer, got {value!r}", item_id=value)
    if value <= 0:
        raise InvalidItemIdError(f"Item ID must be positive, got {value}", item_id=value)
    return value


class ResolutionOutcome(BaseModel):
    """Result of resolving one item ID against the icon service."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    url: str | None = Field(default=None, description="Absolute icon URL when found")
    error: str | None = Field(default=None, description="Failure description")
    duration_ms: float = 0.0

    @classmethod
    def found(cls, url: str, duration_ms: float = 0.0) -> ResolutionOutcome:
        return cls(kind=OutcomeKind.FOUND, url=url, duration_ms=duration_ms)

    @classmethod
    def not_found(cls, duration_ms: float = 0.0) -> ResolutionOutcome:
        return cls(kind=OutcomeKind.NOT_FOUND, duration_ms=duration_ms)

    @classmethod
    def transient(cls, error: str, duration_ms: float = 0.0) -> ResolutionOutcome:
        return cls(kind=OutcomeKind.TRANSIENT, error=error, duration_ms=duration_ms)

    @classmethod
    def quota_exceeded(cls, duration_ms: float = 0.0) -> ResolutionOutcome:
        return cls(
            kind=OutcomeKind.QUOTA_EXCEEDED,
            error="Rate limit exceeded",
            duration_ms=duration_ms,
        )

    @classmethod
    def cancelled(cls) -> ResolutionOutcome:
        return cls(kind=OutcomeKind.CANCELLED)

    @property
    def is_authoritative(self) -> bool:
        """Whether the outcome may be cached for the process lifetime."""
        return self.kind in (OutcomeKind.FOUND, OutcomeKind.NOT_FOUND)

    @property
    def is_retryable(self) -> bool:
        return self.kind == OutcomeKind.TRANSIENT


@dataclass
class ResolutionRequest:
    """One logical lookup handed to the scheduler."""

    identifier: int
    priority: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)
    attempt: int = 0

    def __post_init__(self) -> None:
        validate_item_id(self.identifier)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled


class LoadEvent(BaseModel):
    """A state transition reported by a load controller."""

    model_config = ConfigDict(frozen=True)

    item_id: int
    state: LoadState
    url: str | None = None
    fallback_index: int | None = Field(
        default=None, description="Index into the fallback candidates when state is fallback"
    )
    attempt: int = 0
