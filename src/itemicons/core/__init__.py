"""Core types, models, and utilities."""

from .cancellation import CancellationToken
from .exceptions import (
    ClientNotInitializedError,
    InvalidItemIdError,
    ItemIconsError,
    OperationCancelledError,
    SchedulerClosedError,
    ValidationError,
)
from .models import LoadEvent, ResolutionOutcome, ResolutionRequest, validate_item_id
from .types import LoadState, OutcomeKind

__all__ = [
    # Types
    "LoadState",
    "OutcomeKind",
    # Models
    "LoadEvent",
    "ResolutionOutcome",
    "ResolutionRequest",
    "validate_item_id",
    # Cancellation
    "CancellationToken",
    # Exceptions
    "ClientNotInitializedError",
    "InvalidItemIdError",
    "ItemIconsError",
    "OperationCancelledError",
    "SchedulerClosedError",
    "ValidationError",
]
