"""Pydantic models for the normalized market payloads served by the gateway."""

from __future__ import annotations

from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


Currency = Literal["usd", "eur", "gbp", "jpy"]

SUPPORTED_CURRENCIES: Tuple[str, ...] = ("usd", "eur", "gbp", "jpy")

# [timestamp_ms, value]
SeriesPoint = Tuple[int, Optional[float]]


class Coin(BaseModel):
    """Market snapshot of a single asset, identical for every provider."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    symbol: str
    current_price: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    image: str = ""
    market_cap_rank: Optional[int] = Field(default=None, ge=1)
    last_updated: Optional[str] = None


class CoinResponse(BaseModel):
    """One page of coins.

    ``hasNextPage`` only says the page came back full; it does not prove a
    further page exists.
    """

    coins: List[Coin]
    page: int
    perPage: int
    total: int
    hasNextPage: bool

    @classmethod
    def from_page(cls, coins: List[Coin], *, page: int, per_page: int) -> "CoinResponse":
        return cls(
            coins=coins,
            page=page,
            perPage=per_page,
            total=len(coins),
            hasNextPage=len(coins) == per_page,
        )


class SearchResult(BaseModel):
    """Lightweight search hit without price fields."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    symbol: str
    market_cap_rank: Optional[int] = None
    thumb: Optional[str] = None
    large: Optional[str] = None


class SearchResponse(BaseModel):
    coins: List[SearchResult]
    query: str
    # "as of" time of the upstream call, reused on cache hits
    timestamp: str


class ChartSeries(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prices: List[SeriesPoint] = Field(default_factory=list)
    market_caps: List[SeriesPoint] = Field(default_factory=list)
    total_volumes: List[SeriesPoint] = Field(default_factory=list)


class WatchlistResponse(BaseModel):
    coins: List[Coin]
