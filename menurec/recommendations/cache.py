"""
TTL cache for tenant-level generator results.

Trending rows depend on the query layer, the tenant and the trending settings,
never on the customer, so one entry serves every request for that tenant until
it expires.
"""
from __future__ import annotations

import hashlib
import json
import threading
import time
from typing import Any


class TTLCache:
    """Thread-safe mapping of hashed keys to values that expire after ``ttl`` seconds."""

    def __init__(self, ttl: float = 300.0) -> None:
        self.ttl = ttl
        self._entries: dict[str, tuple[float, Any]] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    @staticmethod
    def make_key(parts: dict[str, Any]) -> str:
        normalized = json.dumps(parts, sort_keys=True, default=str)
        return hashlib.sha256(normalized.encode()).hexdigest()[:16]

    def get(self, parts: dict[str, Any], ttl: float | None = None) -> Any | None:
        key = self.make_key(parts)
        max_age = self.ttl if ttl is None else ttl
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                stored_at, value = entry
                if time.monotonic() - stored_at < max_age:
                    self._hits += 1
                    return value
                del self._entries[key]
            self._misses += 1
        return None

    def set(self, parts: dict[str, Any], value: Any) -> None:
        key = self.make_key(parts)
        with self._lock:
            self._entries[key] = (time.monotonic(), value)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups * 100, 1) if lookups else 0.0,
            }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0


trending_cache = TTLCache()


def get_cache_stats() -> dict[str, Any]:
    return trending_cache.stats()


def clear_cache() -> None:
    trending_cache.clear()
