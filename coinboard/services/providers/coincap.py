"""Fallback adapter for the CoinCap assets API.

CoinCap quotes everything in USD, returns numbers as strings, has no
pagination, icons or (for listings) ranks, so this adapter synthesizes them to
produce the same Coin shape as the primary provider. The requested currency is
not forwarded; fallback prices are always USD.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

import httpx

from coinboard.schemas.market import Coin
from coinboard.services.errors import CoinNotFoundError
from coinboard.services.providers.base import Capability, MarketDataProvider
from coinboard.utils.time import utcnow_iso

logger = logging.getLogger("coinboard.providers")

COINCAP_URL = "https://api.coincap.io/v2"
ICON_URL = "https://assets.coincap.io/assets/icons"


def parse_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_rank(value: Any) -> Optional[int]:
    number = parse_number(value)
    if number is None or number < 1:
        return None
    return int(number)


def icon_url(symbol: str) -> str:
    return f"{ICON_URL}/{symbol.lower()}@2x.png"


class CoinCapProvider(MarketDataProvider):
    name = "coincap"
    capabilities = frozenset({Capability.LISTING, Capability.SINGLE_LOOKUP})

    def __init__(
        self,
        base_url: str = COINCAP_URL,
        *,
        window_size: int = 100,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self.window_size = window_size

    def _to_coin(self, asset: Mapping[str, Any], *, rank: Optional[int]) -> Coin:
        symbol = str(asset.get("symbol") or "").lower()
        return Coin(
            id=str(asset["id"]),
            name=str(asset.get("name") or asset["id"]),
            symbol=symbol,
            current_price=parse_number(asset.get("priceUsd")),
            price_change_percentage_24h=parse_number(asset.get("changePercent24Hr")),
            market_cap=parse_number(asset.get("marketCapUsd")),
            total_volume=parse_number(asset.get("volumeUsd24Hr")),
            image=icon_url(symbol),
            market_cap_rank=rank,
            last_updated=utcnow_iso(),
        )

    def _data(self, payload: Any, resource: str) -> Any:
        if not isinstance(payload, dict) or "data" not in payload:
            raise self._malformed(resource)
        return payload["data"]

    async def list_coins(
        self,
        *,
        page: int,
        per_page: int,
        currency: str,
        query: Optional[str] = None,
    ) -> List[Coin]:
        if currency != "usd":
            logger.debug("coincap quotes usd only | requested=%s", currency)

        params: dict[str, Any] = {"limit": self.window_size}
        if query:
            params["search"] = query

        payload = await self._get_json("/assets", resource="assets", params=params)
        assets = self._data(payload, "assets")
        if not isinstance(assets, list):
            raise self._malformed("assets")

        # emulate pagination over the fetched window
        start = (page - 1) * per_page
        window = assets[start : start + per_page]
        try:
            return [self._to_coin(asset, rank=start + index + 1) for index, asset in enumerate(window)]
        except (KeyError, TypeError, AttributeError) as exc:
            raise self._malformed("assets") from exc

    async def get_coin(self, coin_id: str, *, currency: str) -> Coin:
        payload = await self._get_json(f"/assets/{coin_id}", resource=f"asset {coin_id}")
        asset = self._data(payload, f"asset {coin_id}")
        if not asset:
            raise CoinNotFoundError(f"Coin {coin_id} not found", details={"id": coin_id})
        if not isinstance(asset, dict):
            raise self._malformed(f"asset {coin_id}")
        try:
            return self._to_coin(asset, rank=parse_rank(asset.get("rank")))
        except KeyError as exc:
            raise self._malformed(f"asset {coin_id}") from exc
