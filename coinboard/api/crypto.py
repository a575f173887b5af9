# coinboard/api/crypto.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from coinboard.schemas.market import (
    ChartSeries,
    Coin,
    CoinResponse,
    Currency,
    SearchResponse,
    WatchlistResponse,
)
from coinboard.services.errors import MarketDataError
from coinboard.services.gateway import MarketDataGateway


router = APIRouter(prefix="/crypto", tags=["crypto"])

MAX_PER_PAGE = 250


def get_gateway(request: Request) -> MarketDataGateway:
    return request.app.state.gateway


def _error_response(err: MarketDataError) -> JSONResponse:
    payload: dict[str, Any] = {"error": err.to_dict()}
    return JSONResponse(status_code=err.status_code, content=payload)


def _split_ids(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


@router.get("/coins", response_model=CoinResponse)
async def list_coins(
    page: int = Query(1, ge=1),
    perPage: int = Query(20, ge=1, le=MAX_PER_PAGE),
    currency: Currency = Query("usd"),
    query: Optional[str] = Query(None),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """
    One page of the market-cap ranked list, or the coins matching ``query``.
    Example: /crypto/coins?page=2&perPage=20&currency=eur
    """
    try:
        return await gateway.list_coins(page=page, per_page=perPage, currency=currency, query=query)
    except MarketDataError as err:
        return _error_response(err)


@router.get("/coins/{coin_id}", response_model=Coin)
async def get_coin(
    coin_id: str,
    currency: Currency = Query("usd"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    try:
        return await gateway.get_coin(coin_id, currency=currency)
    except MarketDataError as err:
        return _error_response(err)


@router.get("/chart/{coin_id}", response_model=ChartSeries)
async def get_chart(
    coin_id: str,
    currency: Currency = Query("usd"),
    days: int = Query(1, ge=1),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """
    Price, market cap and volume series as [timestamp_ms, value] pairs.
    Example: /crypto/chart/bitcoin?currency=usd&days=7
    """
    try:
        return await gateway.get_chart(coin_id, currency=currency, days=days)
    except MarketDataError as err:
        return _error_response(err)


@router.get("/search", response_model=SearchResponse)
async def search(
    query: str = Query(..., min_length=1),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    try:
        return await gateway.search(query)
    except MarketDataError as err:
        return _error_response(err)


@router.get("/watchlist", response_model=WatchlistResponse)
async def get_watchlist(
    ids: str = Query(""),
    currency: Currency = Query("usd"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    """
    Example: /crypto/watchlist?ids=bitcoin,ethereum&currency=usd
    """
    try:
        coins = await gateway.get_watchlist(_split_ids(ids), currency=currency)
    except MarketDataError as err:
        return _error_response(err)
    return {"coins": coins}
