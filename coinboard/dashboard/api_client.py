"""Async client for the gateway's /crypto HTTP surface."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, TypeVar

import httpx

from coinboard.schemas.market import ChartSeries, Coin, CoinResponse, SearchResponse

logger = logging.getLogger("coinboard.dashboard")

T = TypeVar("T")

INVALID_RESPONSE = "Invalid response from market data service"


class DashboardApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"]), err.get("code")
        if body.get("detail"):
            return f"Invalid request: {body['detail']}", "invalid_request"
    return f"HTTP error! status: {response.status_code}", None


class DashboardApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001/api",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}{path}", params=params)
        except httpx.HTTPError as exc:
            logger.error("❌ gateway unreachable | %s | err=%s", path, exc)
            raise DashboardApiError(f"Unable to reach market data service: {exc}") from exc

        if response.is_error:
            message, code = _error_message(response)
            raise DashboardApiError(message, status_code=response.status_code, code=code)
        try:
            return response.json()
        except ValueError as exc:
            logger.error("❌ undecodable gateway response | %s | status=%s", path, response.status_code)
            raise DashboardApiError(INVALID_RESPONSE, status_code=response.status_code) from exc

    @staticmethod
    def _parse(parser: Callable[[Any], T], data: Any) -> T:
        # pydantic ValidationError is a ValueError
        try:
            return parser(data)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.error("❌ unexpected gateway payload | err=%s", exc)
            raise DashboardApiError(INVALID_RESPONSE) from exc

    async def fetch_coins(
        self,
        page: int = 1,
        currency: str = "usd",
        per_page: int = 20,
        query: Optional[str] = None,
    ) -> CoinResponse:
        params: dict[str, Any] = {"page": page, "perPage": per_page, "currency": currency}
        if query:
            params["query"] = query
        return self._parse(CoinResponse.model_validate, await self._get("/crypto/coins", params))

    async def fetch_coin(self, coin_id: str, currency: str = "usd") -> Coin:
        data = await self._get(f"/crypto/coins/{coin_id}", {"currency": currency})
        return self._parse(Coin.model_validate, data)

    async def fetch_chart(self, coin_id: str, currency: str = "usd", days: int = 1) -> ChartSeries:
        data = await self._get(f"/crypto/chart/{coin_id}", {"currency": currency, "days": days})
        return self._parse(ChartSeries.model_validate, data)

    async def search(self, query: str) -> SearchResponse:
        return self._parse(SearchResponse.model_validate, await self._get("/crypto/search", {"query": query}))

    async def fetch_watchlist(self, ids: Iterable[str], currency: str = "usd") -> List[Coin]:
        data = await self._get("/crypto/watchlist", {"ids": ",".join(ids), "currency": currency})
        return self._parse(lambda d: [Coin.model_validate(row) for row in d.get("coins") or []], data)
