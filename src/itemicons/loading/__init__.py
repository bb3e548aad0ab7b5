"""Per-consumer load controllers."""

from itemicons.loading.controller import FallbackUrlsFn, IconLoadController, LoadPolicy

__all__ = [
    "FallbackUrlsFn",
    "IconLoadController",
    "LoadPolicy",
]
