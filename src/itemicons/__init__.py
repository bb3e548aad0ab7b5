"""Itemicons - Rate-limited item icon resolution library."""

from itemicons.client import IconClient, resolve_icon_url
from itemicons.config import IconSettings
from itemicons.core.cancellation import CancellationToken
from itemicons.core.models import LoadEvent, ResolutionOutcome
from itemicons.core.types import LoadState, OutcomeKind
from itemicons.loading.controller import IconLoadController, LoadPolicy
from itemicons.resolution.fallback import fallback_icon_urls

__version__ = "0.1.0"
__all__ = [
    # Client
    "IconClient",
    "resolve_icon_url",
    "IconSettings",
    # Types
    "LoadState",
    "OutcomeKind",
    # Models
    "LoadEvent",
    "ResolutionOutcome",
    # Loading
    "CancellationToken",
    "IconLoadController",
    "LoadPolicy",
    "fallback_icon_urls",
    # Version
    "__version__",
]
