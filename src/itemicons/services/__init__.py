"""Service layer for orchestrating icon resolution."""

from itemicons.services.icons import IconService

__all__ = [
    "IconService",
]
