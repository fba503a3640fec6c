import asyncio
import time
from typing import Any, Dict, Optional
from dataclasses import dataclass

from .config import settings


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """Simple in-memory TTL cache.

    Expired entries are evicted lazily on read; when full, the least recently
    used key is dropped. Writes are last-write-wins.
    """

    def __init__(self, default_ttl: int = 300, max_size: int = 1000, name: str = "cache"):
        self.name = name
        self.default_ttl = default_ttl
        self.max_size = max_size
        self.hits = 0
        self.misses = 0
        self._cache: Dict[str, CacheEntry] = {}
        self._access_order: list = []
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            now = time.monotonic()

            if key not in self._cache:
                self.misses += 1
                return None

            entry = self._cache[key]
            if now > entry.expires_at:
                del self._cache[key]
                if key in self._access_order:
                    self._access_order.remove(key)
                self.misses += 1
                return None

            # Update access order for LRU
            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            self.hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            ttl = ttl or self.default_ttl
            expires_at = time.monotonic() + ttl

            self._cache[key] = CacheEntry(value=value, expires_at=expires_at)

            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            # Evict oldest if over max size
            while len(self._cache) > self.max_size:
                oldest_key = self._access_order.pop(0)
                if oldest_key in self._cache:
                    del self._cache[oldest_key]

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._access_order.clear()
            self.hits = 0
            self.misses = 0

    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": self.size(),
            "maxSize": self.max_size,
            "ttlSeconds": self.default_ttl,
            "hits": self.hits,
            "misses": self.misses,
        }


# Process-wide caches: full responses live longer than prices
portfolio_cache = TTLCache(
    default_ttl=settings.portfolio_cache_ttl_seconds,
    max_size=settings.max_cache_size,
    name="portfolio",
)
price_cache = TTLCache(
    default_ttl=settings.price_cache_ttl_seconds,
    max_size=settings.max_cache_size,
    name="prices",
)
