"""Read-through TTL cache for JSON-RPC responses.

The cache is an injected collaborator: whoever needs one builds it and
passes it in, so nothing here is module-level state.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any


def rpc_cache_key(method: str, params: list[Any] | None) -> str:
    """Cache key for a JSON-RPC call: method plus canonical params."""
    return f"{method}:{json.dumps(params or [], sort_keys=True, separators=(',', ':'))}"


class TtlCache:
    """Bounded cache whose entries go stale after `ttl` seconds.

    Stale entries are evicted opportunistically: once the cache grows past
    `max_entries`, a put sweeps out everything older than twice the TTL.
    """

    def __init__(
        self,
        ttl: float = 5.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive: {ttl}")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> tuple[Any, float] | None:
        """Return (value, age_seconds) for a fresh entry, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        age = self._clock() - stored_at
        if age >= self.ttl:
            return None
        return value, age

    def put(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())
        if len(self._entries) > self.max_entries:
            self.evict_stale()

    def evict_stale(self) -> int:
        """Drop entries older than 2 x TTL. Returns the number removed."""
        cutoff = self._clock() - 2 * self.ttl
        stale = [k for k, (_, stored_at) in self._entries.items() if stored_at < cutoff]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


__all__ = ["TtlCache", "rpc_cache_key"]
