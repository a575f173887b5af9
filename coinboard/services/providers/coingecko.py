"""Primary adapter for the public CoinGecko API."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from coinboard.schemas.market import ChartSeries, Coin, SearchResult
from coinboard.services.errors import CoinNotFoundError, InvalidParameterError
from coinboard.services.providers.base import Capability, MarketDataProvider


COINGECKO_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoProvider(MarketDataProvider):
    """
    CoinGecko already speaks the normalized coin shape, so this adapter only
    builds endpoints and validates payload types.
    """

    name = "coingecko"
    capabilities = frozenset(
        {
            Capability.LISTING,
            Capability.SINGLE_LOOKUP,
            Capability.CHART_LOOKUP,
            Capability.SEARCH,
            Capability.BATCH_LOOKUP,
        }
    )

    def __init__(
        self,
        base_url: str = COINGECKO_URL,
        *,
        api_key: str | None = None,
        user_agent: str = "CryptoDashboard/1.0",
        timeout: float = 10.0,
        chart_timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": user_agent},
            transport=transport,
        )
        self.api_key = api_key
        self.chart_timeout = chart_timeout

    def _params(self, **params: Any) -> Dict[str, Any]:
        out = {k: v for k, v in params.items() if v is not None}
        if self.api_key:
            out["x_cg_demo_api_key"] = self.api_key
        return out

    def _markets_params(
        self,
        *,
        currency: str,
        ids: Optional[str] = None,
        per_page: Optional[int] = None,
        page: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._params(
            vs_currency=currency,
            ids=ids,
            order="market_cap_desc",
            per_page=per_page,
            page=page,
            sparkline="false",
        )

    def _coins(self, payload: Any, resource: str) -> List[Coin]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise self._malformed(resource)
        coins = []
        try:
            for row in payload:
                coin = Coin.model_validate(row)
                coins.append(coin.model_copy(update={"symbol": coin.symbol.lower()}))
        except ValidationError as exc:
            raise self._malformed(resource) from exc
        return coins

    async def list_coins(
        self,
        *,
        page: int,
        per_page: int,
        currency: str,
        query: Optional[str] = None,
    ) -> List[Coin]:
        if query:
            # /coins/markets has no text filter; callers resolve ids through search()
            raise InvalidParameterError("CoinGecko listings cannot filter by text; use search() then get_coins()")

        payload = await self._get_json(
            "/coins/markets",
            resource=f"markets page {page}",
            params=self._markets_params(currency=currency, per_page=per_page, page=page),
        )
        return self._coins(payload, "markets")

    async def get_coins(
        self,
        ids: Iterable[str],
        *,
        currency: str,
        per_page: Optional[int] = None,
    ) -> List[Coin]:
        joined = ",".join(ids)
        if not joined:
            return []

        payload = await self._get_json(
            "/coins/markets",
            resource=f"markets ids={joined}",
            params=self._markets_params(
                currency=currency,
                ids=joined,
                per_page=per_page,
                page=1 if per_page else None,
            ),
        )
        return self._coins(payload, "markets")

    async def get_coin(self, coin_id: str, *, currency: str) -> Coin:
        payload = await self._get_json(
            "/coins/markets",
            resource=f"coin {coin_id}",
            params=self._markets_params(currency=currency, ids=coin_id),
        )
        coins = self._coins(payload, f"coin {coin_id}")
        if not coins:
            raise CoinNotFoundError(f"Coin {coin_id} not found", details={"id": coin_id})
        return coins[0]

    async def get_chart(self, coin_id: str, *, currency: str, days: int) -> ChartSeries:
        payload = await self._get_json(
            f"/coins/{coin_id}/market_chart",
            resource=f"chart {coin_id}",
            params=self._params(vs_currency=currency, days=days),
            timeout=self.chart_timeout,
        )
        if not isinstance(payload, dict):
            raise self._malformed(f"chart {coin_id}")
        try:
            return ChartSeries.model_validate(payload)
        except ValidationError as exc:
            raise self._malformed(f"chart {coin_id}") from exc

    async def search(self, query: str) -> List[SearchResult]:
        payload = await self._get_json(
            "/search",
            resource=f"search '{query}'",
            params=self._params(query=query),
        )
        if not isinstance(payload, dict):
            raise self._malformed("search")
        try:
            return [SearchResult.model_validate(row) for row in payload.get("coins") or []]
        except ValidationError as exc:
            raise self._malformed("search") from exc
