from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from coinboard.config.settings import get_settings

_settings = get_settings()

engine = create_async_engine(
    _settings.WATCHLIST_STORAGE_URL,
    echo=_settings.SQL_ECHO,
)

SessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


class Base(DeclarativeBase):
    pass


# each storage read/write gets a fresh session
def session_factory():
    return SessionLocal()
