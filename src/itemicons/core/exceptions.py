"""Custom exception hierarchy for itemicons."""

from typing import Any


class ItemIconsError(Exception):
    """Base exception for all itemicons errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ItemIconsError):
    """Input validation failed."""

    pass


class InvalidItemIdError(ValidationError):
    """Item identifier is not a positive integer."""

    def __init__(
        self,
        message: str,
        item_id: Any,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.item_id = item_id


class OperationCancelledError(ItemIconsError):
    """A cancellation token fired while an operation was suspended."""

    pass


class SchedulerClosedError(ItemIconsError):
    """Work was submitted to a scheduler that has been closed."""

    pass


class ClientNotInitializedError(ItemIconsError, RuntimeError):
    """Client used outside of its async context."""

    pass
