"""Provider abstraction shared by the primary and fallback market-data adapters."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional

import httpx

from coinboard.schemas.market import ChartSeries, Coin, SearchResult
from coinboard.services.errors import (
    CoinNotFoundError,
    UnsupportedCapabilityError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

logger = logging.getLogger("coinboard.providers")


class Capability(str, Enum):
    LISTING = "listing"
    SINGLE_LOOKUP = "single_lookup"
    CHART_LOOKUP = "chart_lookup"
    SEARCH = "search"
    BATCH_LOOKUP = "batch_lookup"


class MarketDataProvider:
    """
    Base adapter. Subclasses declare the operations they implement in
    ``capabilities``; anything outside that set raises
    UnsupportedCapabilityError. The gateway only falls back to a provider for
    operations it declares.
    """

    name: str = "provider"
    capabilities: FrozenSet[Capability] = frozenset()

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._transport = transport

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _unsupported(self, capability: Capability) -> UnsupportedCapabilityError:
        return UnsupportedCapabilityError(
            f"{self.name} does not support {capability.value}",
            details={"provider": self.name, "capability": capability.value},
        )

    # ---------- Operations ----------

    async def list_coins(
        self,
        *,
        page: int,
        per_page: int,
        currency: str,
        query: Optional[str] = None,
    ) -> List[Coin]:
        raise self._unsupported(Capability.LISTING)

    async def get_coins(
        self,
        ids: Iterable[str],
        *,
        currency: str,
        per_page: Optional[int] = None,
    ) -> List[Coin]:
        raise self._unsupported(Capability.BATCH_LOOKUP)

    async def get_coin(self, coin_id: str, *, currency: str) -> Coin:
        raise self._unsupported(Capability.SINGLE_LOOKUP)

    async def get_chart(self, coin_id: str, *, currency: str, days: int) -> ChartSeries:
        raise self._unsupported(Capability.CHART_LOOKUP)

    async def search(self, query: str) -> List[SearchResult]:
        raise self._unsupported(Capability.SEARCH)

    # ---------- HTTP ----------

    async def _get_json(
        self,
        path: str,
        *,
        resource: str,
        params: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        GET base_url + path and decode JSON, translating transport failures
        into the gateway error taxonomy.
        """
        url = f"{self.base_url}{path}"
        limit = self.timeout if timeout is None else timeout
        t0 = time.time()

        try:
            async with httpx.AsyncClient(
                timeout=limit,
                headers=self.headers,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(
                f"{self.name} timed out after {limit:g}s fetching {resource}",
                details={"provider": self.name, "resource": resource},
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                raise CoinNotFoundError(
                    f"{resource} not found on {self.name}",
                    details={"provider": self.name, "resource": resource},
                ) from exc
            raise UpstreamUnavailableError(
                f"{self.name} returned HTTP {status} for {resource}",
                details={"provider": self.name, "resource": resource, "status": status},
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(
                f"Unable to reach {self.name}: {exc}",
                details={"provider": self.name, "resource": resource},
            ) from exc
        except ValueError as exc:
            raise UpstreamUnavailableError(
                f"{self.name} returned a malformed payload for {resource}",
                details={"provider": self.name, "resource": resource},
            ) from exc

        logger.info("upstream ok | %s | %s | %dms", self.name, resource, int((time.time() - t0) * 1000))
        return payload

    def _malformed(self, resource: str) -> UpstreamUnavailableError:
        return UpstreamUnavailableError(
            f"{self.name} returned an unexpected payload for {resource}",
            details={"provider": self.name, "resource": resource},
        )
