# coinboard/scripts/dashboard.py
from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Dict, List, Optional

from coinboard.config.settings import get_settings
from coinboard.dashboard.api_client import DashboardApiClient
from coinboard.dashboard.state import DashboardController, DashboardState
from coinboard.dashboard.storage import JsonFileWatchlistStore, SqlWatchlistStore, WatchlistStore
from coinboard.db.bootstrap import ensure_storage_schema
from coinboard.db.session import engine


async def run_dashboard(
    *,
    controller: DashboardController,
    page: int = 1,
    currency: str = "usd",
    query: Optional[str] = None,
    view: str = "markets",
    sort: Optional[str] = None,
    toggle: Optional[List[str]] = None,
) -> DashboardState:
    """
    One dashboard cycle: load persisted state, apply the requested
    navigation and watchlist changes, and return the resulting state.
    """
    state = controller.state
    state.page = page
    state.currency = currency
    state.search_query = query or ""
    state.view = "markets"

    await controller.start()

    for coin_id in toggle or []:
        await controller.toggle_watchlist(coin_id)

    if sort:
        controller.sort(sort)

    if view != "markets":
        await controller.set_view(view)
    await controller.wait_idle()
    return state


def _summary(state: DashboardState) -> Dict[str, Any]:
    payload = state.to_dict()
    payload["coins"] = [
        {
            "rank": c.market_cap_rank,
            "id": c.id,
            "symbol": c.symbol,
            "price": c.current_price,
            "change_24h": c.price_change_percentage_24h,
        }
        for c in state.coins
    ]
    return payload


def _build_store(args: argparse.Namespace) -> WatchlistStore:
    s = get_settings()
    if args.storage_file:
        return JsonFileWatchlistStore(args.storage_file, key=s.WATCHLIST_STORAGE_KEY)
    return SqlWatchlistStore(key=s.WATCHLIST_STORAGE_KEY)


async def _main_async(args: argparse.Namespace) -> DashboardState:
    s = get_settings()
    if not args.storage_file:
        await ensure_storage_schema(engine)

    controller = DashboardController(
        DashboardApiClient(args.api_base or s.DASHBOARD_API_BASE),
        _build_store(args),
        per_page=args.per_page or s.DASHBOARD_PER_PAGE,
    )
    try:
        state = await run_dashboard(
            controller=controller,
            page=args.page,
            currency=args.currency,
            query=args.query,
            view=args.view,
            sort=args.sort,
            toggle=args.toggle,
        )
        if args.watch:
            print(json.dumps(_summary(state)), flush=True)
            await controller.poll(
                asyncio.Event(),
                interval_s=s.DASHBOARD_POLL_SECONDS,
                on_refresh=lambda st: print(json.dumps(_summary(st)), flush=True),
            )
        return state
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Render one dashboard cycle as JSON")
    parser.add_argument("--api-base", default=None)
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--per-page", type=int, default=None)
    parser.add_argument("--currency", choices=["usd", "eur", "gbp", "jpy"], default="usd")
    parser.add_argument("--query", default=None)
    parser.add_argument("--view", choices=["markets", "watchlist"], default="markets")
    parser.add_argument("--sort", default=None, help="Coin field to sort the loaded page by")
    parser.add_argument("--toggle", action="append", default=None, help="Coin id to add/remove (repeatable)")
    parser.add_argument("--storage-file", default=None, help="JSON file instead of the SQL client store")
    parser.add_argument("--watch", action="store_true", help="Keep polling and print the state after every refresh")
    args = parser.parse_args()

    try:
        state = asyncio.run(_main_async(args))
    except KeyboardInterrupt:
        raise SystemExit(0)
    print(json.dumps(_summary(state)))
    raise SystemExit(1 if state.show_error_panel else 0)


if __name__ == "__main__":
    main()
