"""Abstract icon resolver with HTTP client management and outcome classification."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, ClassVar

import httpx
from pydantic import BaseModel

from itemicons.core.cancellation import CancellationToken
from itemicons.core.exceptions import OperationCancelledError
from itemicons.core.models import ResolutionOutcome

if TYPE_CHECKING:
    from itemicons.config import IconSettings

logger = logging.getLogger(__name__)


class ResolverConfig(BaseModel):
    """Configuration for an icon resolver."""

    base_url: str | None = None
    icon_base_url: str | None = None
    timeout: float = 5.0
    user_agent: str = "itemicons/0.1"
    enabled: bool = True

    @classmethod
    def from_settings(cls, settings: "IconSettings") -> "ResolverConfig":
        return cls(
            base_url=settings.api_base_url,
            icon_base_url=settings.icon_base_url,
            timeout=settings.request_timeout,
            user_agent=settings.user_agent,
            enabled=settings.lookups_enabled,
        )


class AbstractIconResolver(ABC):
    """
    Abstract base class for icon resolvers.

    Provides:
    - HTTP client management with connection pooling
    - A hard per-call timeout independent of any caller pacing
    - Cooperative cancellation of the in-flight call
    - Conversion of transport failures into transient outcomes

    A resolver issues exactly one call per ``resolve`` and never retries;
    retry policy belongs to the scheduler and the load controllers.
    """

    # Class-level configuration (to be overridden by subclasses)
    BASE_URL: ClassVar[str]
    ICON_BASE_URL: ClassVar[str]

    def __init__(self, config: ResolverConfig | None = None) -> None:
        self.config = config or ResolverConfig()
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self.config.base_url or self.BASE_URL

    @property
    def icon_base_url(self) -> str:
        return self.config.icon_base_url or self.ICON_BASE_URL

    @property
    def is_enabled(self) -> bool:
        """Whether this resolver is enabled."""
        return self.config.enabled

    @asynccontextmanager
    async def _get_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Get or create HTTP client with proper lifecycle."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.config.timeout),
                headers=self._get_default_headers(),
                follow_redirects=True,
            )
        yield self._client

    def _get_default_headers(self) -> dict[str, str]:
        """Get default headers for requests. Override to add auth."""
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "application/json",
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def resolve(
        self,
        item_id: int,
        token: CancellationToken | None = None,
    ) -> ResolutionOutcome:
        """
        Resolve an item ID to an icon URL with one bounded network call.

        Args:
            item_id: Positive item identifier
            token: Cancels the call when triggered by the caller

        Returns:
            Found / NotFound / QuotaExceeded as classified by the subclass,
            Transient on timeout, transport failure or when the resolver is
            disabled, Cancelled when the token fired first
        """
        token = token or CancellationToken()
        if token.cancelled:
            return ResolutionOutcome.cancelled()

        if not self.is_enabled:
            return ResolutionOutcome.transient("Resolver disabled")

        start = time.monotonic()
        try:
            async with asyncio.timeout(self.config.timeout):
                return await token.run(self._fetch(item_id))
        except OperationCancelledError:
            logger.debug(f"Lookup for item {item_id} cancelled")
            return ResolutionOutcome.cancelled()
        except TimeoutError:
            return ResolutionOutcome.transient(
                f"Timed out after {self.config.timeout}s",
                duration_ms=(time.monotonic() - start) * 1000,
            )
        except httpx.HTTPError as e:
            return ResolutionOutcome.transient(
                f"HTTP error: {e}",
                duration_ms=(time.monotonic() - start) * 1000,
            )

    @abstractmethod
    async def _fetch(self, item_id: int) -> ResolutionOutcome:
        """
        Perform the network call for ``item_id`` and classify the response.

        Transport errors may propagate as ``httpx.HTTPError``; they are
        turned into transient outcomes by ``resolve``.
        """
        ...

    async def __aenter__(self) -> "AbstractIconResolver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
