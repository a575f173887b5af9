from __future__ import annotations

import pytest

from coinboard.utils.cache import ResponseCache
from coinboard.tests.fakes import FakeClock


def test_get_returns_value_until_ttl_elapses():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("coins:1:20:usd:all", {"x": 1}, 300_000)

    clock.advance(299_999)
    assert cache.get("coins:1:20:usd:all") == {"x": 1}

    clock.advance(1)
    assert cache.get("coins:1:20:usd:all") is None
    assert len(cache) == 0


def test_set_replaces_entry_and_expiry():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("k", "old", 60_000)
    clock.advance(50_000)
    cache.set("k", "new", 60_000)

    clock.advance(50_000)
    assert cache.get("k") == "new"
    assert len(cache) == 1


def test_evicts_least_recently_used_when_full():
    cache = ResponseCache(max_entries=3, clock=FakeClock())
    cache.set("a", 1, 1000)
    cache.set("b", 2, 1000)
    cache.set("c", 3, 1000)

    # touching "a" makes "b" the oldest
    assert cache.get("a") == 1
    cache.set("d", 4, 1000)

    assert "b" not in cache
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.get("d") == 4
    assert len(cache) == 3


def test_never_exceeds_capacity():
    cache = ResponseCache(max_entries=100, clock=FakeClock())
    for i in range(250):
        cache.set(f"k{i}", i, 1000)
    assert len(cache) == 100
    assert cache.get("k149") is None
    assert cache.get("k150") == 150


def test_contains_respects_expiry_without_counting():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("k", 1, 10)
    assert "k" in cache
    clock.advance(10)
    assert "k" not in cache
    assert cache.stats() == {"size": 1, "capacity": 100, "hits": 0, "misses": 0}


def test_stats_count_hits_and_misses():
    cache = ResponseCache(max_entries=5, clock=FakeClock())
    cache.set("k", 1, 1000)
    cache.get("k")
    cache.get("k")
    cache.get("missing")
    assert cache.stats() == {"size": 1, "capacity": 5, "hits": 2, "misses": 1}

    cache.clear()
    assert len(cache) == 0


def test_rejects_bad_configuration():
    with pytest.raises(ValueError):
        ResponseCache(max_entries=0)
    with pytest.raises(ValueError):
        ResponseCache().set("k", 1, 0)
