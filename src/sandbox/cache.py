"""Render result cache.

LRU with TTL, keyed by an xxhash64 digest of ``(framework, code)``, so an
unchanged tree never crosses the isolation boundary twice.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from core.hash import hash_fields
from monitoring import metrics_collector


@dataclass
class Stats:
    """Cache statistics."""

    size: int = 0
    max_size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate (0.0 to 1.0)."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": self.hit_rate,
        }


class RenderCache:
    """
    LRU cache of sandbox render results.

    Examples:
        >>> cache = RenderCache(max_size=64, ttl_seconds=900)
        >>> cache.set("<div />", "react", {"html": "..."})
        >>> cache.get("<div />", "react")
        {'html': '...'}
    """

    def __init__(self, max_size: int = 64, ttl_seconds: float | None = 900) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")

        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._cache: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._stats = Stats(max_size=max_size)

    @staticmethod
    def key(code: str, framework: str) -> str:
        return hash_fields(framework, code)

    def _is_expired(self, stored_at: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.monotonic() - stored_at >= self.ttl_seconds

    def get(self, code: str, framework: str) -> Any | None:
        """Cached result, or None if absent or expired."""
        cache_key = self.key(code, framework)
        entry = self._cache.get(cache_key)

        if entry is not None and not self._is_expired(entry[1]):
            self._cache.move_to_end(cache_key)
            self._stats.hits += 1
            metrics_collector.record_cache_hit("render")
            return entry[0]

        if entry is not None:
            del self._cache[cache_key]
            self._stats.size = len(self._cache)
        self._stats.misses += 1
        metrics_collector.record_cache_miss("render")
        return None

    def set(self, code: str, framework: str, result: Any) -> None:
        cache_key = self.key(code, framework)
        self._cache.pop(cache_key, None)
        self._cache[cache_key] = (result, time.monotonic())

        # Least recently used goes first
        if len(self._cache) > self.max_size:
            self._cache.popitem(last=False)
            self._stats.evictions += 1

        self._stats.size = len(self._cache)

    def clear(self) -> None:
        self._cache.clear()
        self._stats.size = 0

    @property
    def stats(self) -> Stats:
        return self._stats

    def __len__(self) -> int:
        return len(self._cache)


__all__ = ["RenderCache", "Stats"]
