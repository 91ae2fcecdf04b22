"""
Base Provider - Abstract base class for all data provider adapters.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

import httpx

from feedoracle.errors import ProviderFetchError
from feedoracle.models import ProviderInfo, ProviderReading


class BaseProvider(ABC):
    """
    Abstract base class for data provider adapters.

    Each adapter must:
    1. Declare its name, source kind and the data types it can answer
    2. Answer ``fetch(subject, timeout)`` with a value and a confidence
    3. Be independent (no shared state with other providers)

    Adapters raise on failure; the dispatcher turns exceptions into
    failure records for the round.
    """

    name: ClassVar[str] = ""
    data_source_kind: ClassVar[str] = "rest_api"
    capabilities: ClassVar[tuple[str, ...]] = ()
    reliability: ClassVar[float] = 50.0
    stake: ClassVar[float] = 50.0
    reputation: ClassVar[float] = 50.0
    description: ClassVar[str] = ""

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name=self.name,
            data_source_kind=self.data_source_kind,
            capabilities=list(self.capabilities),
            reliability=self.reliability,
            stake=self.stake,
            reputation=self.reputation,
            description=self.description,
        )

    @abstractmethod
    async def fetch(self, data_type: str, subject: str, timeout: float) -> ProviderReading:
        """
        Fetch one answer from the upstream source.

        Args:
            data_type: The kind of data requested, e.g. "price"
            subject: What the data is about, e.g. "BTC" or "Berlin"
            timeout: Seconds the caller is willing to wait

        Returns:
            ProviderReading with the value and the provider's confidence
        """
        pass

    async def health_check(self) -> bool:
        """Return True when the upstream source is reachable."""
        return True

    async def close(self) -> None:
        """Release network resources."""
        return None


class HTTPProvider(BaseProvider):
    """Shared httpx client handling for REST adapters."""

    user_agent: ClassVar[str] = "feedoracle/0.1"

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(headers={"User-Agent": self.user_agent})

    async def _get_json(self, url: str, timeout: float, params: Optional[dict] = None):
        try:
            response = await self.client.get(url, params=params, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise ProviderFetchError(self.name, f"request failed: {e}") from e
        except ValueError as e:
            raise ProviderFetchError(self.name, f"invalid JSON: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
