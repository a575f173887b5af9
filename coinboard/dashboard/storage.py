"""Durable client-local storage for the watchlist id set."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Set

from sqlalchemy import select

from coinboard.db.models import ClientStorageEntry
from coinboard.db.session import session_factory

logger = logging.getLogger("coinboard.dashboard")

WATCHLIST_KEY = "crypto-watchlist"


def encode_ids(ids: Iterable[str]) -> str:
    return json.dumps(sorted(set(ids)))


def decode_ids(raw: str | None) -> Set[str]:
    if not raw:
        return set()
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("⚠️ unreadable watchlist payload, starting empty")
        return set()
    if not isinstance(data, list):
        logger.warning("⚠️ watchlist payload is not a list, starting empty")
        return set()
    return {str(x) for x in data if x}


class WatchlistStore:
    """Persistence capability injected into the dashboard controller."""

    key: str = WATCHLIST_KEY

    async def load(self) -> Set[str]:
        raise NotImplementedError

    async def save(self, ids: Set[str]) -> None:
        raise NotImplementedError


class MemoryWatchlistStore(WatchlistStore):
    """Keeps the serialized list in memory; survives controller restarts only."""

    def __init__(self, key: str = WATCHLIST_KEY):
        self.key = key
        self.data: dict[str, str] = {}
        self.saves = 0

    async def load(self) -> Set[str]:
        return decode_ids(self.data.get(self.key))

    async def save(self, ids: Set[str]) -> None:
        self.data[self.key] = encode_ids(ids)
        self.saves += 1


class JsonFileWatchlistStore(WatchlistStore):
    """
    One JSON document on disk mapping storage keys to serialized values, the
    same shape browser local storage has.
    """

    def __init__(self, path: str | os.PathLike, key: str = WATCHLIST_KEY):
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except FileNotFoundError:
            return {}
        except ValueError:
            logger.warning("⚠️ storage file unreadable | path=%s", self.path)
            return {}
        return doc if isinstance(doc, dict) else {}

    async def load(self) -> Set[str]:
        return decode_ids(self._read_document().get(self.key))

    async def save(self, ids: Set[str]) -> None:
        doc = self._read_document()
        doc[self.key] = encode_ids(ids)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(doc, f)
        os.replace(tmp_path, self.path)


class SqlWatchlistStore(WatchlistStore):
    """Stores the serialized list in the ``client_storage`` table."""

    def __init__(
        self,
        session_factory_fn: Callable[[], Any] = session_factory,
        key: str = WATCHLIST_KEY,
    ):
        self._session_factory = session_factory_fn
        self.key = key

    async def load(self) -> Set[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ClientStorageEntry.value).where(ClientStorageEntry.key == self.key)
            )
            raw = result.scalar_one_or_none()
        return decode_ids(raw)

    async def save(self, ids: Set[str]) -> None:
        async with self._session_factory() as session:
            row = await session.get(ClientStorageEntry, self.key)
            if row is None:
                session.add(ClientStorageEntry(key=self.key, value=encode_ids(ids)))
            else:
                row.value = encode_ids(ids)
            await session.commit()
