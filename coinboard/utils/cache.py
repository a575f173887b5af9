from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Tuple


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ResponseCache:
    """
    In-memory response cache with a per-entry TTL and a fixed capacity.

    Expired entries are dropped lazily when read. When the cache is full the
    least recently used entry is evicted.
    """

    def __init__(self, max_entries: int = 100, clock: Callable[[], float] = _monotonic_ms):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._clock = clock
        # key -> (expires_at_ms, value)
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        """
        Return the cached value, or None if missing or expired.
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """
        Store value under key, replacing any existing entry and its expiry.
        """
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")

        if key in self._entries:
            del self._entries[key]
        self._entries[key] = (self._clock() + ttl_ms, value)

        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[0]

    def stats(self) -> Dict[str, int]:
        return {
            "size": len(self._entries),
            "capacity": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
        }
