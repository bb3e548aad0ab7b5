"""Deterministic fallback icon URLs."""

from __future__ import annotations

# Icon folders most item icons live in, in the order they are tried
FALLBACK_FOLDERS: tuple[str, ...] = ("020000", "021000", "022000", "023000", "024000")

DEFAULT_ICON_BASE_URL = "https://xivapi.com"


def fallback_icon_urls(item_id: int, base_url: str = DEFAULT_ICON_BASE_URL) -> list[str]:
    """
    Compute candidate icon URLs for an item without any network call.

    The item ID is zero-padded to six digits and placed into each of the
    common icon folders. The guess is not guaranteed to exist; callers try
    the candidates in order until one renders.

    Args:
        item_id: Item identifier
        base_url: Host serving the icon files

    Returns:
        Ordered candidate URLs, empty for non-positive or non-integer IDs
    """
    if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id <= 0:
        return []

    icon_id = f"{item_id:06d}"
    base = base_url.rstrip("/")
    return [f"{base}/i/{folder}/{icon_id}.png" for folder in FALLBACK_FOLDERS]
