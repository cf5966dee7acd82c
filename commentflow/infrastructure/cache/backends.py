# commentflow/infrastructure/cache/backends.py
"""
Cache Store Backends
Raw key/value storage with TTL: in-process memory store and Redis
"""

import fnmatch
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, runtime_checkable

import redis

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheBackend(Protocol):
    """Key/value store consumed by TypedCache. Values are serialized strings."""

    supports_pattern_delete: bool

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def delete_matched(self, pattern: str) -> int: ...

    def increment(
        self, key: str, amount: int = 1, ttl_seconds: Optional[int] = None
    ) -> int: ...

    def scan(self, pattern: str) -> Iterator[str]: ...

    def clear(self) -> None: ...


# ============================================================================
# In-Memory Backend
# ============================================================================


class MemoryCacheBackend:
    """
    Thread-safe in-process cache with per-item expiry

    Shared by every thread of one process only. Use RedisCacheBackend when
    several workers must see the same breaker state and statistics.
    """

    supports_pattern_delete = True

    def __init__(self, clock: Callable[[], float] = time.time):
        self._items: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def _live_item(self, key: str) -> Optional[Dict[str, Any]]:
        item = self._items.get(key)
        if item is None:
            return None

        if item["expires_at"] is not None and self._clock() >= item["expires_at"]:
            del self._items[key]
            return None

        return item

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds else None

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._live_item(key)
            return item["value"] if item else None

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._items[key] = {
                "value": value,
                "created_at": self._clock(),
                "expires_at": self._expiry(ttl_seconds),
            }

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def delete_matched(self, pattern: str) -> int:
        with self._lock:
            matched = [k for k in self._items if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                del self._items[key]
            return len(matched)

    def increment(
        self, key: str, amount: int = 1, ttl_seconds: Optional[int] = None
    ) -> int:
        with self._lock:
            item = self._live_item(key)
            current = int(item["value"]) if item else 0
            new_value = current + amount
            self._items[key] = {
                "value": str(new_value),
                "created_at": item["created_at"] if item else self._clock(),
                "expires_at": (
                    self._expiry(ttl_seconds)
                    if ttl_seconds
                    else (item["expires_at"] if item else None)
                ),
            }
            return new_value

    def scan(self, pattern: str) -> Iterator[str]:
        with self._lock:
            keys = [
                k
                for k in list(self._items)
                if fnmatch.fnmatchcase(k, pattern) and self._live_item(k)
            ]
        return iter(keys)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def clear_expired(self) -> int:
        """
        Drop expired items

        Returns:
            Number of items removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                k
                for k, item in self._items.items()
                if item["expires_at"] is not None and now >= item["expires_at"]
            ]
            for key in expired:
                del self._items[key]
            return len(expired)


# ============================================================================
# Redis Backend
# ============================================================================


class RedisCacheBackend:
    """Redis-backed cache shared by all worker processes"""

    supports_pattern_delete = True

    def __init__(self, client: redis.Redis, scan_batch: int = 500):
        self.client = client
        self.scan_batch = scan_batch

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        client = redis.Redis.from_url(url, decode_responses=True)
        logger.info(f"✅ Redis cache backend connected: {url}")
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self.client.set(key, value, ex=ttl_seconds)

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(key))

    def delete_matched(self, pattern: str) -> int:
        deleted = 0
        batch = []
        for key in self.client.scan_iter(match=pattern, count=self.scan_batch):
            batch.append(key)
            if len(batch) >= self.scan_batch:
                deleted += self.client.delete(*batch)
                batch = []
        if batch:
            deleted += self.client.delete(*batch)
        return deleted

    def increment(
        self, key: str, amount: int = 1, ttl_seconds: Optional[int] = None
    ) -> int:
        pipe = self.client.pipeline()
        pipe.incrby(key, amount)
        if ttl_seconds:
            pipe.expire(key, ttl_seconds)
        result = pipe.execute()
        return int(result[0])

    def scan(self, pattern: str) -> Iterator[str]:
        return self.client.scan_iter(match=pattern, count=self.scan_batch)

    def clear(self) -> None:
        self.client.flushdb()


def create_cache_backend(backend: str = "memory", redis_url: Optional[str] = None):
    """
    Factory for the configured cache backend

    Args:
        backend: "memory" or "redis"
        redis_url: Redis connection URL (redis backend only)

    Returns:
        CacheBackend instance
    """
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis_url is required for the redis cache backend")
        return RedisCacheBackend.from_url(redis_url)

    if backend == "memory":
        return MemoryCacheBackend()

    raise ValueError(f"Unknown cache backend: {backend}")
