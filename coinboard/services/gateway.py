"""Read-through market data gateway: cache -> primary provider -> fallback provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar

from pydantic import BaseModel

from coinboard.config.settings import Settings
from coinboard.schemas.market import (
    SUPPORTED_CURRENCIES,
    ChartSeries,
    Coin,
    CoinResponse,
    SearchResponse,
)
from coinboard.services.errors import (
    CoinNotFoundError,
    InvalidParameterError,
    MarketDataError,
    UpstreamUnavailableError,
)
from coinboard.services.providers.base import Capability, MarketDataProvider
from coinboard.services.providers.coincap import CoinCapProvider
from coinboard.services.providers.coingecko import CoinGeckoProvider
from coinboard.utils.cache import ResponseCache
from coinboard.utils.time import utcnow_iso

logger = logging.getLogger("coinboard.gateway")

T = TypeVar("T")

SEARCH_RESULT_LIMIT = 20


def _detached(value: Any) -> Any:
    """Copy of a cached payload so callers cannot mutate the stored entry."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    if isinstance(value, list):
        return [_detached(item) for item in value]
    return value


# ----------------------------
# Cache keys
# ----------------------------
def coins_key(page: int, per_page: int, currency: str, query: Optional[str]) -> str:
    return f"coins:{page}:{per_page}:{currency}:{query or 'all'}"


def coin_key(coin_id: str, currency: str) -> str:
    return f"coin:{coin_id}:{currency}"


def chart_key(coin_id: str, currency: str, days: int) -> str:
    return f"chart:{coin_id}:{currency}:{days}"


def search_key(query: str) -> str:
    return f"search:{query}"


def watchlist_key(ids: Iterable[str], currency: str) -> str:
    return f"watchlist:{','.join(sorted(ids))}:{currency}"


# ----------------------------
# Validation
# ----------------------------
def _require_currency(currency: str) -> None:
    if currency not in SUPPORTED_CURRENCIES:
        raise InvalidParameterError(
            f"Unsupported currency '{currency}'",
            details={"supported": list(SUPPORTED_CURRENCIES)},
        )


def _require_positive(name: str, value: int) -> None:
    if not isinstance(value, int) or value < 1:
        raise InvalidParameterError(f"{name} must be an integer >= 1", details={name: value})


def _require_text(name: str, value: str) -> str:
    if not value or not value.strip():
        raise InvalidParameterError(f"{name} must not be empty")
    return value


class MarketDataGateway:
    """
    Orchestrates one cache and two providers.

    Every primary call waits ``rate_limit_delay_ms`` first; cache hits skip the
    wait. If the primary provider fails and the secondary declares the
    operation's capability, the secondary is tried once and its result is cached
    with the shorter fallback TTL. There is no locking around read-then-write:
    concurrent misses for one key may both go upstream and the last write wins.
    """

    def __init__(
        self,
        cache: ResponseCache,
        primary: MarketDataProvider,
        secondary: MarketDataProvider | None = None,
        *,
        rate_limit_delay_ms: int = 1000,
        primary_ttl_ms: int = 300_000,
        fallback_ttl_ms: int = 60_000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.primary = primary
        self.secondary = secondary
        self.rate_limit_delay_ms = rate_limit_delay_ms
        self.primary_ttl_ms = primary_ttl_ms
        self.fallback_ttl_ms = fallback_ttl_ms
        self._sleep = sleep

    # ---------- Helpers ----------

    async def _throttle(self) -> None:
        if self.rate_limit_delay_ms > 0:
            await self._sleep(self.rate_limit_delay_ms / 1000.0)

    async def _primary_call(self, call: Callable[[MarketDataProvider], Awaitable[T]]) -> T:
        await self._throttle()
        return await call(self.primary)

    def _cached(self, key: str):
        value = self.cache.get(key)
        if value is None:
            logger.debug("cache miss | %s", key)
            return None
        logger.debug("cache hit | %s", key)
        return _detached(value)

    def _store(self, key: str, value: Any, ttl_ms: int) -> None:
        self.cache.set(key, _detached(value), ttl_ms)

    def _can_fall_back(self, capability: Capability) -> bool:
        return self.secondary is not None and self.secondary.supports(capability)

    # ---------- Operations ----------

    async def list_coins(
        self,
        *,
        page: int = 1,
        per_page: int = 20,
        currency: str = "usd",
        query: Optional[str] = None,
    ) -> CoinResponse:
        _require_positive("page", page)
        _require_positive("perPage", per_page)
        _require_currency(currency)
        query = query.strip() if query and query.strip() else None

        key = coins_key(page, per_page, currency, query)
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            coins = await self._list_from_primary(page=page, per_page=per_page, currency=currency, query=query)
            ttl = self.primary_ttl_ms
        except MarketDataError as primary_err:
            logger.warning("primary listing failed | %s | err=%s", key, primary_err)
            if not self._can_fall_back(Capability.LISTING):
                raise
            logger.info("trying fallback listing | provider=%s", self.secondary.name)
            try:
                coins = await self.secondary.list_coins(
                    page=page,
                    per_page=per_page,
                    currency=currency,
                    query=query,
                )
            except MarketDataError as secondary_err:
                logger.error("fallback listing failed | %s | err=%s", key, secondary_err)
                raise UpstreamUnavailableError(
                    f"Failed to fetch coins from all sources: {primary_err}; fallback: {secondary_err}",
                    details={"key": key},
                ) from secondary_err
            ttl = self.fallback_ttl_ms

        result = CoinResponse.from_page(coins, page=page, per_page=per_page)
        self._store(key, result, ttl)
        return result

    async def _list_from_primary(
        self,
        *,
        page: int,
        per_page: int,
        currency: str,
        query: Optional[str],
    ) -> List[Coin]:
        if not query:
            return await self._primary_call(
                lambda p: p.list_coins(page=page, per_page=per_page, currency=currency)
            )

        # searched listing: resolve ids, then one markets call for exactly those ids
        hits = await self._primary_call(lambda p: p.search(query))
        ids = [hit.id for hit in hits[:per_page]]
        if not ids:
            return []
        return await self._primary_call(lambda p: p.get_coins(ids, currency=currency, per_page=per_page))

    async def get_coin(self, coin_id: str, *, currency: str = "usd") -> Coin:
        _require_text("id", coin_id)
        _require_currency(currency)

        key = coin_key(coin_id, currency)
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            coin = await self._primary_call(lambda p: p.get_coin(coin_id, currency=currency))
            ttl = self.primary_ttl_ms
        except MarketDataError as primary_err:
            logger.warning("primary coin lookup failed | %s | err=%s", coin_id, primary_err)
            if not self._can_fall_back(Capability.SINGLE_LOOKUP):
                raise
            try:
                coin = await self.secondary.get_coin(coin_id, currency=currency)
            except MarketDataError as secondary_err:
                details = {
                    "id": coin_id,
                    "primary_error": str(primary_err),
                    "fallback_error": str(secondary_err),
                }
                if isinstance(primary_err, CoinNotFoundError) and isinstance(secondary_err, CoinNotFoundError):
                    raise CoinNotFoundError(f"Coin {coin_id} not found", details=details) from secondary_err
                logger.error("fallback coin lookup failed | %s | err=%s", coin_id, secondary_err)
                raise UpstreamUnavailableError(
                    f"Failed to fetch coin {coin_id}: {primary_err}; fallback: {secondary_err}",
                    details=details,
                ) from secondary_err
            ttl = self.fallback_ttl_ms

        self._store(key, coin, ttl)
        return coin

    async def get_chart(self, coin_id: str, *, currency: str = "usd", days: int = 1) -> ChartSeries:
        _require_text("id", coin_id)
        _require_currency(currency)
        _require_positive("days", days)

        key = chart_key(coin_id, currency, days)
        cached = self._cached(key)
        if cached is not None:
            return cached

        chart, ttl = await self._fetch(
            Capability.CHART_LOOKUP,
            lambda p: p.get_chart(coin_id, currency=currency, days=days),
            context=f"chart data for {coin_id}",
        )
        self._store(key, chart, ttl)
        return chart

    async def search(self, query: str) -> SearchResponse:
        _require_text("query", query)

        key = search_key(query)
        cached = self._cached(key)
        if cached is not None:
            return cached

        hits, ttl = await self._fetch(
            Capability.SEARCH,
            lambda p: p.search(query),
            context=f"search results for '{query}'",
        )
        result = SearchResponse(coins=hits[:SEARCH_RESULT_LIMIT], query=query, timestamp=utcnow_iso())
        self._store(key, result, ttl)
        return result

    async def get_watchlist(self, ids: Iterable[str], *, currency: str = "usd") -> List[Coin]:
        _require_currency(currency)
        unique = sorted({i.strip() for i in ids if i and i.strip()})
        if not unique:
            return []

        key = watchlist_key(unique, currency)
        cached = self._cached(key)
        if cached is not None:
            return cached

        coins, ttl = await self._fetch(
            Capability.BATCH_LOOKUP,
            lambda p: p.get_coins(unique, currency=currency),
            context="watchlist coins",
        )
        self._store(key, coins, ttl)
        return coins

    async def _fetch(
        self,
        capability: Capability,
        call: Callable[[MarketDataProvider], Awaitable[T]],
        *,
        context: str,
    ) -> Tuple[T, int]:
        """
        Primary fetch with a fallback only where the secondary provider
        declares ``capability``. Returns the value and the TTL to cache it with.
        Without a declared fallback the primary error propagates unchanged.
        """
        try:
            return await self._primary_call(call), self.primary_ttl_ms
        except MarketDataError as primary_err:
            if not self._can_fall_back(capability):
                logger.error("failed to fetch %s | err=%s", context, primary_err)
                raise
            logger.warning("primary failed for %s, trying %s | err=%s", context, self.secondary.name, primary_err)
            try:
                return await call(self.secondary), self.fallback_ttl_ms
            except MarketDataError as secondary_err:
                logger.error("fallback failed for %s | err=%s", context, secondary_err)
                raise UpstreamUnavailableError(
                    f"Failed to fetch {context}: {primary_err}; fallback: {secondary_err}",
                    details={"primary_error": str(primary_err), "fallback_error": str(secondary_err)},
                ) from secondary_err

    def describe(self) -> dict:
        providers = [self.primary] + ([self.secondary] if self.secondary else [])
        return {
            "providers": [
                {"name": p.name, "capabilities": sorted(c.value for c in p.capabilities)}
                for p in providers
            ],
            "rate_limit_delay_ms": self.rate_limit_delay_ms,
            "primary_ttl_ms": self.primary_ttl_ms,
            "fallback_ttl_ms": self.fallback_ttl_ms,
            "cache": self.cache.stats(),
        }


def build_gateway(settings: Settings) -> MarketDataGateway:
    primary = CoinGeckoProvider(
        settings.PRIMARY_API_BASE,
        api_key=settings.PRIMARY_API_KEY,
        user_agent=settings.UPSTREAM_USER_AGENT,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
        chart_timeout=settings.CHART_TIMEOUT_SECONDS,
    )
    secondary = CoinCapProvider(
        settings.SECONDARY_API_BASE,
        window_size=settings.SECONDARY_WINDOW_SIZE,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    return MarketDataGateway(
        ResponseCache(max_entries=settings.CACHE_MAX_ENTRIES),
        primary,
        secondary,
        rate_limit_delay_ms=settings.RATE_LIMIT_DELAY_MS,
        primary_ttl_ms=settings.PRIMARY_CACHE_TTL_MS,
        fallback_ttl_ms=settings.FALLBACK_CACHE_TTL_MS,
    )
