"""XIVAPI icon resolver implementation."""

from __future__ import annotations

import logging
import time
from typing import Any, ClassVar

from itemicons.core.models import ResolutionOutcome
from itemicons.resolution.base import AbstractIconResolver, ResolverConfig

logger = logging.getLogger(__name__)


class XivApiResolver(AbstractIconResolver):
    """
    XIVAPI item resolver.

    API Documentation: https://xivapi.com/docs

    ``GET /Item/{id}?columns=Icon`` returns ``{"Icon": "/i/020000/020801.png"}``;
    the icon path is relative to the API host.
    The service allows 20 requests per second per key and client IP.
    """

    BASE_URL: ClassVar[str] = "https://xivapi.com"
    ICON_BASE_URL: ClassVar[str] = "https://xivapi.com"
    ITEM_PATH: ClassVar[str] = "/Item/{item_id}"
    ICON_FIELD: ClassVar[str] = "Icon"

    def __init__(self, config: ResolverConfig | None = None) -> None:
        super().__init__(config)

    async def _fetch(self, item_id: int) -> ResolutionOutcome:
        start = time.monotonic()

        async with self._get_client() as client:
            response = await client.get(
                self.ITEM_PATH.format(item_id=item_id),
                params={"columns": self.ICON_FIELD},
            )

        duration_ms = (time.monotonic() - start) * 1000

        if response.status_code == 404:
            return ResolutionOutcome.not_found(duration_ms=duration_ms)

        if response.status_code == 429:
            logger.debug(f"Quota exceeded while resolving item {item_id}")
            return ResolutionOutcome.quota_exceeded(duration_ms=duration_ms)

        if not response.is_success:
            return ResolutionOutcome.transient(
                f"Unexpected status {response.status_code}",
                duration_ms=duration_ms,
            )

        try:
            data = response.json()
        except ValueError as e:
            return ResolutionOutcome.transient(f"Malformed body: {e}", duration_ms=duration_ms)

        if not isinstance(data, dict):
            return ResolutionOutcome.transient(
                f"Expected a JSON object, got {type(data).__name__}",
                duration_ms=duration_ms,
            )

        icon_path = self._parse_icon_path(data)
        if icon_path is None:
            # The item exists but has no icon
            return ResolutionOutcome.not_found(duration_ms=duration_ms)

        return ResolutionOutcome.found(self._to_absolute(icon_path), duration_ms=duration_ms)

    def _parse_icon_path(self, data: dict[str, Any]) -> str | None:
        icon = data.get(self.ICON_FIELD)
        if not isinstance(icon, str) or not icon.strip():
            return None
        return icon.strip()

    def _to_absolute(self, icon_path: str) -> str:
        if icon_path.startswith(("http://", "https://")):
            return icon_path
        return f"{self.icon_base_url.rstrip('/')}/{icon_path.lstrip('/')}"
