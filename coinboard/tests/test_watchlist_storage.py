from __future__ import annotations

import json

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from coinboard.dashboard.storage import (
    JsonFileWatchlistStore,
    SqlWatchlistStore,
    decode_ids,
    encode_ids,
)
from coinboard.db.bootstrap import ensure_storage_schema


def test_ids_serialize_as_sorted_json_array():
    assert encode_ids({"solana", "bitcoin"}) == '["bitcoin", "solana"]'
    assert decode_ids('["bitcoin", "solana"]') == {"bitcoin", "solana"}


@pytest.mark.parametrize("raw", [None, "", "not json", '{"bitcoin": true}'])
def test_unreadable_payload_starts_empty(raw):
    assert decode_ids(raw) == set()


@pytest.mark.asyncio
async def test_json_file_store_round_trip(tmp_path):
    path = tmp_path / "storage.json"
    store = JsonFileWatchlistStore(path)

    assert await store.load() == set()

    await store.save({"bitcoin", "ethereum"})
    assert await JsonFileWatchlistStore(path).load() == {"bitcoin", "ethereum"}

    await store.save(set())
    assert await JsonFileWatchlistStore(path).load() == set()


@pytest.mark.asyncio
async def test_json_file_store_keeps_other_keys(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

    await JsonFileWatchlistStore(path).save({"bitcoin"})

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc == {"theme": "dark", "crypto-watchlist": '["bitcoin"]'}


@pytest.mark.asyncio
async def test_json_file_store_survives_corrupt_file(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{broken", encoding="utf-8")

    store = JsonFileWatchlistStore(path)
    assert await store.load() == set()
    await store.save({"bitcoin"})
    assert await store.load() == {"bitcoin"}


@pytest_asyncio.fixture
async def sessionmaker():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await ensure_storage_schema(engine)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield Session
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_sql_store_round_trip(sessionmaker):
    store = SqlWatchlistStore(sessionmaker)
    assert await store.load() == set()

    await store.save({"bitcoin"})
    await store.save({"bitcoin", "solana"})
    assert await SqlWatchlistStore(sessionmaker).load() == {"bitcoin", "solana"}


@pytest.mark.asyncio
async def test_sql_store_keys_are_independent(sessionmaker):
    await SqlWatchlistStore(sessionmaker).save({"bitcoin"})

    other = SqlWatchlistStore(sessionmaker, key="other-profile")
    assert await other.load() == set()
    await other.save({"ethereum"})

    assert await SqlWatchlistStore(sessionmaker).load() == {"bitcoin"}
