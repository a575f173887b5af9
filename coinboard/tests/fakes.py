from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from coinboard.schemas.market import ChartSeries, Coin, CoinResponse, SearchResult
from coinboard.services.providers.base import Capability, MarketDataProvider


ALL_CAPABILITIES = frozenset(Capability)


def make_coin(coin_id: str, price: float = 1.0, rank: int | None = 1, symbol: str | None = None) -> Coin:
    return Coin(
        id=coin_id,
        name=coin_id.title(),
        symbol=symbol or coin_id[:3],
        current_price=price,
        price_change_percentage_24h=0.5,
        market_cap=price * 1000,
        total_volume=price * 10,
        image=f"https://img.example/{coin_id}.png",
        market_cap_rank=rank,
        last_updated="2024-01-01T00:00:00.000Z",
    )


class FakeProvider(MarketDataProvider):
    """In-memory provider recording every call; ``errors`` maps method -> exception."""

    def __init__(self, name: str = "fake", capabilities: Iterable[Capability] = ALL_CAPABILITIES):
        super().__init__("http://fake.invalid")
        self.name = name
        self.capabilities = frozenset(capabilities)
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.errors: Dict[str, Exception] = {}
        self.listing: List[Coin] = []
        self.coins: Dict[str, Coin] = {}
        self.hits: List[SearchResult] = []
        self.chart = ChartSeries(prices=[(1, 1.0), (2, 2.0)], market_caps=[(1, 10.0)], total_volumes=[(1, 5.0)])

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        if method in self.errors:
            raise self.errors[method]

    def called(self, method: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    async def list_coins(self, *, page, per_page, currency, query=None):
        if not self.supports(Capability.LISTING):
            raise self._unsupported(Capability.LISTING)
        self._record("list_coins", page=page, per_page=per_page, currency=currency, query=query)
        start = (page - 1) * per_page
        return self.listing[start : start + per_page]

    async def get_coins(self, ids, *, currency, per_page=None):
        if not self.supports(Capability.BATCH_LOOKUP):
            raise self._unsupported(Capability.BATCH_LOOKUP)
        ids = list(ids)
        self._record("get_coins", ids=ids, currency=currency, per_page=per_page)
        return [self.coins[i] for i in ids if i in self.coins]

    async def get_coin(self, coin_id, *, currency):
        if not self.supports(Capability.SINGLE_LOOKUP):
            raise self._unsupported(Capability.SINGLE_LOOKUP)
        self._record("get_coin", coin_id=coin_id, currency=currency)
        return self.coins[coin_id]

    async def get_chart(self, coin_id, *, currency, days):
        if not self.supports(Capability.CHART_LOOKUP):
            raise self._unsupported(Capability.CHART_LOOKUP)
        self._record("get_chart", coin_id=coin_id, currency=currency, days=days)
        return self.chart

    async def search(self, query):
        if not self.supports(Capability.SEARCH):
            raise self._unsupported(Capability.SEARCH)
        self._record("search", query=query)
        return list(self.hits)


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def hit(coin_id: str, rank: Optional[int] = None) -> SearchResult:
    return SearchResult(id=coin_id, name=coin_id.title(), symbol=coin_id[:3], market_cap_rank=rank)


class FakeDashboardApi:
    def __init__(self):
        self.coins = [
            make_coin("bitcoin", price=43000.0, rank=1),
            make_coin("ethereum", price=2300.0, rank=2),
            make_coin("tether", price=1.0, rank=3),
            make_coin("solana", price=101.0, rank=4),
        ]
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.errors: Dict[str, Exception] = {}

    def called(self, method: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))
        if method in self.errors:
            raise self.errors[method]

    async def fetch_coins(self, page=1, currency="usd", per_page=20, query=None):
        self._record("fetch_coins", page=page, currency=currency, per_page=per_page, query=query)
        start = (page - 1) * per_page
        rows = self.coins[start : start + per_page]
        return CoinResponse.from_page(rows, page=page, per_page=per_page)

    async def fetch_watchlist(self, ids, currency="usd"):
        ids = list(ids)
        self._record("fetch_watchlist", ids=ids, currency=currency)
        return [c for c in self.coins if c.id in ids]

    async def fetch_coin(self, coin_id, currency="usd"):
        self._record("fetch_coin", coin_id=coin_id, currency=currency)
        return next(c for c in self.coins if c.id == coin_id)

    async def fetch_chart(self, coin_id, currency="usd", days=1):
        self._record("fetch_chart", coin_id=coin_id, currency=currency, days=days)
        return ChartSeries(prices=[(1700000000000, 1.0), (1700000300000, 2.0)])
