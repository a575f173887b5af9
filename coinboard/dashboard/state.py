"""Client-side dashboard state: paging, sort, search, currency and watchlist."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Literal, Optional, Set

from coinboard.dashboard.api_client import DashboardApiClient, DashboardApiError
from coinboard.dashboard.storage import WatchlistStore
from coinboard.schemas.market import SUPPORTED_CURRENCIES, ChartSeries, Coin, SeriesPoint

logger = logging.getLogger("coinboard.dashboard")

View = Literal["markets", "watchlist"]
SortDirection = Literal["asc", "desc"]
NotificationKind = Literal["success", "error", "info"]

VIEWS = ("markets", "watchlist")
TIME_RANGES = (1, 7, 30)


class ListStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass
class Notification:
    message: str
    kind: NotificationKind


@dataclass
class DashboardState:
    page: int = 1
    view: View = "markets"
    currency: str = "usd"
    search_query: str = ""
    sort_field: Optional[str] = None
    sort_direction: SortDirection = "desc"
    watchlist: Set[str] = field(default_factory=set)
    coins: List[Coin] = field(default_factory=list)
    has_next_page: bool = False
    watchlist_coins: List[Coin] = field(default_factory=list)
    status: ListStatus = ListStatus.IDLE
    loaded_once: bool = False
    error: Optional[str] = None
    notification: Optional[Notification] = None

    @property
    def loading(self) -> bool:
        return self.status == ListStatus.LOADING

    @property
    def show_error_panel(self) -> bool:
        # only a failed first load replaces the content; later failures keep old data
        return self.status == ListStatus.FAILED and not self.loaded_once

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "view": self.view,
            "currency": self.currency,
            "search_query": self.search_query,
            "sort_field": self.sort_field,
            "sort_direction": self.sort_direction,
            "watchlist": sorted(self.watchlist),
            "coins": [c.model_dump() for c in self.coins],
            "has_next_page": self.has_next_page,
            "watchlist_coins": [c.model_dump() for c in self.watchlist_coins],
            "status": self.status.value,
            "error": self.error,
            "show_error_panel": self.show_error_panel,
            "notification": (
                {"message": self.notification.message, "kind": self.notification.kind}
                if self.notification
                else None
            ),
        }


def _sort_value(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return value.casefold()
    return None


def sort_coins(coins: List[Coin], sort_field: str, direction: SortDirection) -> List[Coin]:
    """
    Stable sort by one Coin field. Numbers compare numerically, strings
    case-insensitively. Coins without a comparable value (e.g. None) go last
    in either direction, keeping their relative order.
    """
    if sort_field not in Coin.model_fields:
        raise ValueError(f"Unknown sort field '{sort_field}'")

    present: List[Coin] = []
    missing: List[Coin] = []
    for coin in coins:
        if _sort_value(getattr(coin, sort_field)) is None:
            missing.append(coin)
        else:
            present.append(coin)

    present.sort(key=lambda c: _sort_value(getattr(c, sort_field)), reverse=direction == "desc")
    return present + missing


class DashboardController:
    """
    Owns DashboardState and performs the fetches that state changes imply.

    Overlapping fetches are neither cancelled nor fenced: whichever response
    arrives last is written to state.
    """

    def __init__(
        self,
        api: DashboardApiClient,
        store: WatchlistStore,
        *,
        per_page: int = 20,
        state: DashboardState | None = None,
    ):
        self.api = api
        self.store = store
        self.per_page = per_page
        self.state = state or DashboardState()
        self._background: Set[asyncio.Task] = set()

    # ---------- Lifecycle ----------

    async def start(self) -> DashboardState:
        self.state.watchlist = await self.store.load()
        logger.info("dashboard started | watchlist=%d", len(self.state.watchlist))
        await self.refresh_coins()
        if self.state.view == "watchlist":
            await self.refresh_watchlist()
        return self.state

    async def poll(
        self,
        stop_event: asyncio.Event,
        interval_s: float = 60.0,
        on_refresh: Callable[[DashboardState], None] | None = None,
    ) -> None:
        """
        Re-fetch the visible data every ``interval_s`` until stop_event is set.
        """
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                await self.refresh_coins()
                if self.state.view == "watchlist":
                    await self.refresh_watchlist()
                if on_refresh is not None:
                    on_refresh(self.state)

    async def wait_idle(self) -> None:
        """Wait for watchlist refreshes scheduled by mutations."""
        while self._background:
            pending = list(self._background)
            await asyncio.gather(*pending, return_exceptions=True)
            self._background.difference_update(pending)

    # ---------- Fetching ----------

    async def refresh_coins(self) -> None:
        s = self.state
        s.status = ListStatus.LOADING
        s.error = None
        try:
            data = await self.api.fetch_coins(
                page=s.page,
                currency=s.currency,
                per_page=self.per_page,
                query=s.search_query.strip() or None,
            )
        except DashboardApiError as err:
            message = str(err) or "Failed to load market data"
            logger.warning("⚠️ coin list fetch failed | page=%s | err=%s", s.page, message)
            s.status = ListStatus.FAILED
            s.error = message
            self.notify(message, "error")
            return

        # provider order; a previous client-side sort does not survive a re-fetch
        s.coins = list(data.coins)
        s.has_next_page = data.hasNextPage
        s.sort_field = None
        s.sort_direction = "desc"
        s.status = ListStatus.LOADED
        s.loaded_once = True

    async def refresh_watchlist(self) -> None:
        s = self.state
        ids = sorted(s.watchlist)
        if not ids:
            s.watchlist_coins = []
            return

        try:
            coins = await self.api.fetch_watchlist(ids, currency=s.currency)
        except DashboardApiError as err:
            logger.warning("⚠️ watchlist fetch failed | err=%s", err)
            self.notify(str(err) or "Failed to load watchlist", "error")
            return
        s.watchlist_coins = coins

    def _schedule_watchlist_refresh(self) -> None:
        task = asyncio.ensure_future(self.refresh_watchlist())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ---------- Navigation ----------

    async def set_page(self, page: int) -> None:
        if page < 1:
            raise ValueError("page must be >= 1")
        if page == self.state.page:
            return
        self.state.page = page
        await self.refresh_coins()

    async def next_page(self) -> None:
        await self.set_page(self.state.page + 1)

    async def prev_page(self) -> None:
        if self.state.page > 1:
            await self.set_page(self.state.page - 1)

    async def set_currency(self, currency: str) -> None:
        if currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency '{currency}'")
        if currency == self.state.currency:
            return
        self.state.currency = currency
        await self.refresh_coins()
        if self.state.view == "watchlist":
            await self.refresh_watchlist()

    async def search(self, query: str) -> None:
        s = self.state
        changed = query != s.search_query
        s.search_query = query
        if query.strip() and s.page != 1:
            s.page = 1
            changed = True
        if changed:
            await self.refresh_coins()

    async def set_view(self, view: View) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view '{view}'")
        self.state.view = view
        if view == "watchlist":
            await self.refresh_watchlist()

    def sort(self, sort_field: str) -> List[Coin]:
        """
        Re-order the loaded page in place. The same field flips direction,
        a new field starts descending. No fetch is made.
        """
        s = self.state
        if s.sort_field == sort_field:
            s.sort_direction = "asc" if s.sort_direction == "desc" else "desc"
        else:
            s.sort_field = sort_field
            s.sort_direction = "desc"
        s.coins = sort_coins(s.coins, sort_field, s.sort_direction)
        return s.coins

    # ---------- Watchlist ----------

    async def toggle_watchlist(self, coin_id: str) -> bool:
        """
        Add or remove coin_id. Returns True if the coin is now watched.
        """
        s = self.state
        updated = set(s.watchlist)
        if coin_id in updated:
            updated.discard(coin_id)
            self.notify("Removed from watchlist", "info")
        else:
            updated.add(coin_id)
            self.notify("Added to watchlist", "success")
        await self._commit_watchlist(updated)
        return coin_id in updated

    async def remove_from_watchlist(self, coin_id: str) -> None:
        updated = set(self.state.watchlist)
        updated.discard(coin_id)
        self.notify("Removed from watchlist", "info")
        await self._commit_watchlist(updated)

    async def _commit_watchlist(self, updated: Set[str]) -> None:
        s = self.state
        s.watchlist = updated
        s.watchlist_coins = [c for c in s.watchlist_coins if c.id in updated]
        await self.store.save(updated)
        if s.view == "watchlist":
            self._schedule_watchlist_refresh()

    def is_watched(self, coin_id: str) -> bool:
        return coin_id in self.state.watchlist

    # ---------- Notifications ----------

    def notify(self, message: str, kind: NotificationKind) -> None:
        self.state.notification = Notification(message=message, kind=kind)

    def dismiss_notification(self) -> None:
        self.state.notification = None


@dataclass
class CoinDetailState:
    coin_id: str
    currency: str = "usd"
    days: int = 1
    coin: Optional[Coin] = None
    prices: List[SeriesPoint] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None
    chart_error: Optional[str] = None


class CoinDetailController:
    """Detail screen for one coin: snapshot plus a price series for 1, 7 or 30 days."""

    def __init__(self, api: DashboardApiClient, coin_id: str, *, currency: str = "usd", days: int = 1):
        if days not in TIME_RANGES:
            raise ValueError(f"Unsupported time range {days}")
        self.api = api
        self.state = CoinDetailState(coin_id=coin_id, currency=currency, days=days)

    async def load(self) -> CoinDetailState:
        await asyncio.gather(self._load_coin(), self._load_chart())
        return self.state

    async def _load_coin(self) -> None:
        s = self.state
        s.loading = True
        s.error = None
        try:
            s.coin = await self.api.fetch_coin(s.coin_id, currency=s.currency)
        except DashboardApiError as err:
            logger.warning("⚠️ coin detail fetch failed | %s | err=%s", s.coin_id, err)
            s.error = "Failed to load coin data"
        finally:
            s.loading = False

    async def _load_chart(self) -> None:
        s = self.state
        s.chart_error = None
        try:
            chart: ChartSeries = await self.api.fetch_chart(s.coin_id, currency=s.currency, days=s.days)
        except DashboardApiError as err:
            # no synthetic series: the chart stays empty and the failure is shown
            logger.warning("⚠️ chart fetch failed | %s | err=%s", s.coin_id, err)
            s.prices = []
            s.chart_error = str(err) or "Failed to load chart data"
            return
        s.prices = list(chart.prices)

    async def set_time_range(self, days: int) -> None:
        if days not in TIME_RANGES:
            raise ValueError(f"Unsupported time range {days}")
        if days == self.state.days:
            return
        self.state.days = days
        await self.load()

    async def set_currency(self, currency: str) -> None:
        if currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency '{currency}'")
        if currency == self.state.currency:
            return
        self.state.currency = currency
        await self.load()
