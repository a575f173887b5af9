# coinboard/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


def parse_csv(value: str | None, default: List[str]) -> List[str]:
    if not value:
        return default
    items = [x.strip() for x in value.split(",")]
    return [x for x in items if x]


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


@dataclass(frozen=True)
class Settings:
    # upstream providers
    PRIMARY_API_BASE: str
    PRIMARY_API_KEY: str | None
    SECONDARY_API_BASE: str
    UPSTREAM_USER_AGENT: str
    REQUEST_TIMEOUT_SECONDS: float
    CHART_TIMEOUT_SECONDS: float
    SECONDARY_WINDOW_SIZE: int

    # gateway policy
    RATE_LIMIT_DELAY_MS: int
    PRIMARY_CACHE_TTL_MS: int
    FALLBACK_CACHE_TTL_MS: int
    CACHE_MAX_ENTRIES: int

    # http surface
    API_PREFIX: str
    CORS_ORIGINS: List[str]
    LOG_LEVEL: str

    # dashboard client
    DASHBOARD_API_BASE: str
    DASHBOARD_PER_PAGE: int
    DASHBOARD_POLL_SECONDS: int
    WATCHLIST_STORAGE_URL: str
    WATCHLIST_STORAGE_KEY: str
    SQL_ECHO: bool

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            PRIMARY_API_BASE=os.getenv("PRIMARY_API_BASE", "https://api.coingecko.com/api/v3"),
            PRIMARY_API_KEY=os.getenv("PRIMARY_API_KEY") or None,
            SECONDARY_API_BASE=os.getenv("SECONDARY_API_BASE", "https://api.coincap.io/v2"),
            UPSTREAM_USER_AGENT=os.getenv("UPSTREAM_USER_AGENT", "CryptoDashboard/1.0"),
            REQUEST_TIMEOUT_SECONDS=parse_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), 10.0),
            CHART_TIMEOUT_SECONDS=parse_float(os.getenv("CHART_TIMEOUT_SECONDS"), 15.0),
            SECONDARY_WINDOW_SIZE=parse_int(os.getenv("SECONDARY_WINDOW_SIZE"), 100),
            RATE_LIMIT_DELAY_MS=parse_int(os.getenv("RATE_LIMIT_DELAY_MS"), 1000),
            PRIMARY_CACHE_TTL_MS=parse_int(os.getenv("PRIMARY_CACHE_TTL_MS"), 300_000),
            FALLBACK_CACHE_TTL_MS=parse_int(os.getenv("FALLBACK_CACHE_TTL_MS"), 60_000),
            CACHE_MAX_ENTRIES=parse_int(os.getenv("CACHE_MAX_ENTRIES"), 100),
            API_PREFIX=os.getenv("API_PREFIX", "/api"),
            CORS_ORIGINS=parse_csv(os.getenv("CORS_ORIGINS"), ["*"]),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
            DASHBOARD_API_BASE=os.getenv("DASHBOARD_API_BASE", "http://localhost:3001/api"),
            DASHBOARD_PER_PAGE=parse_int(os.getenv("DASHBOARD_PER_PAGE"), 20),
            DASHBOARD_POLL_SECONDS=parse_int(os.getenv("DASHBOARD_POLL_SECONDS"), 60),
            WATCHLIST_STORAGE_URL=os.getenv("WATCHLIST_STORAGE_URL", "sqlite+aiosqlite:///./dashboard.db"),
            WATCHLIST_STORAGE_KEY=os.getenv("WATCHLIST_STORAGE_KEY", "crypto-watchlist"),
            SQL_ECHO=parse_bool(os.getenv("SQL_ECHO"), False),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
