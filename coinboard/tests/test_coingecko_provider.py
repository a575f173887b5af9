from __future__ import annotations

import httpx
import pytest

from coinboard.services.errors import (
    CoinNotFoundError,
    InvalidParameterError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from coinboard.services.providers.coingecko import CoinGeckoProvider

BASE = "https://api.coingecko.com/api/v3"


def _market_row(coin_id: str = "bitcoin", symbol: str = "BTC", rank: int = 1) -> dict:
    return {
        "id": coin_id,
        "symbol": symbol,
        "name": coin_id.title(),
        "image": f"https://assets.coingecko.com/coins/images/1/large/{coin_id}.png",
        "current_price": 43000.5,
        "market_cap": 840000000000,
        "market_cap_rank": rank,
        "total_volume": 12000000000,
        "price_change_percentage_24h": 2.1,
        "last_updated": "2024-01-01T00:00:00.000Z",
        "ath": 69000,
    }


def _provider(handler, **kwargs) -> CoinGeckoProvider:
    return CoinGeckoProvider(BASE, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_list_coins_builds_markets_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["ua"] = request.headers.get("user-agent")
        return httpx.Response(200, json=[_market_row(), _market_row("ethereum", "ETH", 2)])

    coins = await _provider(handler, user_agent="CryptoDashboard/1.0").list_coins(
        page=2, per_page=20, currency="eur"
    )

    assert seen["path"] == "/api/v3/coins/markets"
    assert seen["params"] == {
        "vs_currency": "eur",
        "order": "market_cap_desc",
        "per_page": "20",
        "page": "2",
        "sparkline": "false",
    }
    assert seen["ua"] == "CryptoDashboard/1.0"
    assert [c.symbol for c in coins] == ["btc", "eth"]
    assert coins[0].market_cap_rank == 1


@pytest.mark.asyncio
async def test_api_key_is_sent_as_demo_param():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["x_cg_demo_api_key"] == "demo-key"
        return httpx.Response(200, json=[])

    assert await _provider(handler, api_key="demo-key").list_coins(page=1, per_page=5, currency="usd") == []


@pytest.mark.asyncio
async def test_text_filter_is_rejected_on_listing():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    with pytest.raises(InvalidParameterError):
        await _provider(handler).list_coins(page=1, per_page=20, currency="usd", query="btc")


@pytest.mark.asyncio
async def test_get_coins_joins_ids():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["ids"] == "bitcoin,ethereum"
        assert request.url.params["per_page"] == "2"
        assert request.url.params["page"] == "1"
        return httpx.Response(200, json=[_market_row(), _market_row("ethereum", "ETH", 2)])

    coins = await _provider(handler).get_coins(["bitcoin", "ethereum"], currency="usd", per_page=2)
    assert [c.id for c in coins] == ["bitcoin", "ethereum"]


@pytest.mark.asyncio
async def test_get_coins_without_ids_makes_no_request():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    assert await _provider(handler).get_coins([], currency="usd") == []


@pytest.mark.asyncio
async def test_get_coin_empty_result_is_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    with pytest.raises(CoinNotFoundError) as excinfo:
        await _provider(handler).get_coin("nope", currency="usd")
    assert "nope" in str(excinfo.value)


@pytest.mark.asyncio
async def test_chart_uses_longer_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v3/coins/bitcoin/market_chart"
        assert request.url.params["days"] == "7"
        assert request.extensions["timeout"]["read"] == 15.0
        return httpx.Response(
            200,
            json={
                "prices": [[1700000000000, 43000.1], [1700000300000, 43010.0]],
                "market_caps": [[1700000000000, 8.4e11]],
                "total_volumes": [[1700000000000, 1.2e10]],
            },
        )

    chart = await _provider(handler, timeout=10.0, chart_timeout=15.0).get_chart("bitcoin", currency="usd", days=7)
    assert chart.prices[1] == (1700000300000, 43010.0)
    assert len(chart.market_caps) == 1


@pytest.mark.asyncio
async def test_search_returns_hits():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["query"] == "bit"
        return httpx.Response(
            200,
            json={
                "coins": [
                    {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC", "market_cap_rank": 1, "thumb": "t", "large": "l"},
                ],
                "exchanges": [],
            },
        )

    hits = await _provider(handler).search("bit")
    assert hits[0].id == "bitcoin"
    assert hits[0].large == "l"


@pytest.mark.asyncio
async def test_timeout_maps_to_upstream_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamTimeoutError) as excinfo:
        await _provider(handler).list_coins(page=1, per_page=20, currency="usd")
    assert excinfo.value.status_code == 504
    assert "timed out after 10s" in str(excinfo.value)


@pytest.mark.asyncio
async def test_http_errors_map_to_taxonomy():
    def rate_limited(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"status": {"error_code": 429}})

    def missing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "coin not found"})

    with pytest.raises(UpstreamUnavailableError) as excinfo:
        await _provider(rate_limited).list_coins(page=1, per_page=20, currency="usd")
    assert "HTTP 429" in str(excinfo.value)
    assert excinfo.value.details["status"] == 429

    with pytest.raises(CoinNotFoundError):
        await _provider(missing).get_chart("nope", currency="usd", days=1)


@pytest.mark.asyncio
async def test_malformed_payload_is_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    def bad_rows(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": "bitcoin"}])

    with pytest.raises(UpstreamUnavailableError):
        await _provider(handler).list_coins(page=1, per_page=20, currency="usd")
    with pytest.raises(UpstreamUnavailableError):
        await _provider(bad_rows).list_coins(page=1, per_page=20, currency="usd")
