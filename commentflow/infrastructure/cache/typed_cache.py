# commentflow/infrastructure/cache/typed_cache.py
"""
Typed Cache
Namespaced key/value cache partitioned by CacheType, with trigger-based invalidation
"""

import json
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional

import redis

from commentflow.infrastructure.cache.backends import CacheBackend, create_cache_backend
from commentflow.infrastructure.cache.cache_types import (
    CACHE_POLICIES,
    CacheType,
    InvalidationTrigger,
    get_policy,
)
from commentflow.infrastructure.cache.stats import CacheStats

logger = logging.getLogger(__name__)

INDEX_SUFFIX = "__index__"


class TypedCache:
    """
    Cache facade used by every pipeline component

    Keys are namespaced as ``{environment}:{type prefix}:{key}``. Values are
    JSON-serialized before the size ceiling of their type is checked, so an
    oversized value is rejected without touching the store.

    Usage:
        cache = TypedCache(MemoryCacheBackend(), environment="test")
        cache.write("user_1", {"total": 3}, CacheType.USER_METRICS)
        cache.invalidate(InvalidationTrigger.METRICS_RECALCULATION)
    """

    def __init__(
        self,
        backend: CacheBackend,
        environment: str = "development",
        stats: Optional[CacheStats] = None,
    ):
        self.backend = backend
        self.environment = environment
        self.stats = stats or CacheStats(backend, environment)
        self._index_lock = threading.Lock()

        self._invalidation_handlers: Dict[
            InvalidationTrigger, Callable[[Optional[Any], Optional[str]], int]
        ] = {
            InvalidationTrigger.KEYWORD_CHANGE: self._on_keyword_change,
            InvalidationTrigger.USER_DATA_CHANGE: self._on_user_data_change,
            InvalidationTrigger.COMMENT_CHANGE: self._on_comment_change,
            InvalidationTrigger.METRICS_RECALCULATION: self._on_metrics_recalculation,
            InvalidationTrigger.TRANSLATION_UPDATE: self._on_translation_update,
        }

    # ========================================================================
    # Keys
    # ========================================================================

    def build_key(self, key: str, cache_type: CacheType) -> str:
        return f"{self.environment}:{get_policy(cache_type).prefix}:{key}"

    def _namespace_pattern(self, cache_type: CacheType) -> str:
        return self.build_key("*", cache_type)

    def _index_key(self, cache_type: CacheType) -> str:
        return self.build_key(INDEX_SUFFIX, cache_type)

    # ========================================================================
    # Core Operations
    # ========================================================================

    def read(self, key: str, cache_type: CacheType) -> Any:
        """
        Read a cached value

        Args:
            key: Key within the type namespace
            cache_type: Cache partition

        Returns:
            Cached value, or None on miss
        """
        full_key = self.build_key(key, cache_type)

        try:
            raw = self.backend.get(full_key)
        except redis.RedisError as e:
            logger.error(f"❌ Cache read failed for {full_key}: {e}")
            return None

        if raw is None:
            self.stats.record_miss()
            return None

        self.stats.record_hit()
        return json.loads(raw)

    def write(
        self,
        key: str,
        value: Any,
        cache_type: CacheType,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """
        Write a value under its type's TTL and size policy

        Args:
            key: Key within the type namespace
            value: JSON-serializable value
            cache_type: Cache partition
            ttl_seconds: Override of the type's TTL

        Returns:
            True if written, False if rejected (oversized or store failure)
        """
        policy = get_policy(cache_type)
        full_key = self.build_key(key, cache_type)
        payload = json.dumps(value, default=str)
        size = len(payload.encode("utf-8"))

        if size > policy.max_size_bytes:
            logger.warning(
                f"⚠️ Cache write rejected for {full_key}: "
                f"{size} bytes exceeds {policy.max_size_bytes} byte limit"
            )
            return False

        ttl = ttl_seconds if ttl_seconds is not None else policy.ttl_seconds

        try:
            self.backend.set(full_key, payload, ttl)
            if not self.backend.supports_pattern_delete:
                self._index_add(cache_type, full_key)
            self.stats.record_write()
        except redis.RedisError as e:
            logger.error(f"❌ Cache write failed for {full_key}: {e}")
            return False

        return True

    def fetch(self, key: str, cache_type: CacheType, compute: Callable[[], Any]) -> Any:
        """Read-through: return cached value or compute, store and return it"""
        value = self.read(key, cache_type)
        if value is not None:
            return value

        value = compute()
        if value is not None:
            self.write(key, value, cache_type)
        return value

    async def fetch_async(
        self, key: str, cache_type: CacheType, compute: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Read-through for coroutine producers"""
        value = self.read(key, cache_type)
        if value is not None:
            return value

        value = await compute()
        if value is not None:
            self.write(key, value, cache_type)
        return value

    def delete(self, key: str, cache_type: CacheType) -> bool:
        full_key = self.build_key(key, cache_type)

        try:
            deleted = self.backend.delete(full_key)
        except redis.RedisError as e:
            logger.error(f"❌ Cache delete failed for {full_key}: {e}")
            return False

        if deleted:
            self.stats.record_delete()
        return deleted

    def delete_matched(self, pattern: str, cache_type: CacheType) -> int:
        """
        Delete every key of a type matching a glob pattern

        Falls back to clearing the whole type namespace when the backend
        cannot match patterns.

        Returns:
            Number of deleted entries
        """
        if not self.backend.supports_pattern_delete:
            logger.warning(
                f"⚠️ Pattern delete unsupported, clearing whole {cache_type.value} cache"
            )
            return self.clear_type(cache_type)

        deleted = self.backend.delete_matched(self.build_key(pattern, cache_type))
        self.stats.record_delete(deleted)
        return deleted

    def increment(
        self,
        key: str,
        cache_type: CacheType,
        amount: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> int:
        """
        Atomically add ``amount`` to an integer entry and return the new value

        Returns 0 when the store is unreachable.
        """
        policy = get_policy(cache_type)
        ttl = ttl_seconds if ttl_seconds is not None else policy.ttl_seconds
        full_key = self.build_key(key, cache_type)

        try:
            value = self.backend.increment(full_key, amount, ttl)
            if not self.backend.supports_pattern_delete:
                self._index_add(cache_type, full_key)
        except redis.RedisError as e:
            logger.error(f"❌ Cache increment failed for {full_key}: {e}")
            return 0
        return value

    def clear_type(self, cache_type: CacheType) -> int:
        """Remove every entry of one cache type"""
        cache_type = CacheType(cache_type)

        if self.backend.supports_pattern_delete:
            deleted = self.backend.delete_matched(self._namespace_pattern(cache_type))
        else:
            deleted = 0
            for full_key in self._index_keys(cache_type):
                if self.backend.delete(full_key):
                    deleted += 1
            self.backend.delete(self._index_key(cache_type))

        self.stats.record_delete(deleted)
        logger.info(f"🗑️ Cleared {deleted} {cache_type.value} cache entries")
        return deleted

    def clear_all(self) -> int:
        """Remove every typed entry and reset statistics"""
        total = sum(self.clear_type(cache_type) for cache_type in CacheType)
        self.stats.reset()
        logger.warning(f"🗑️ Cleared all caches ({total} entries)")
        return total

    # ========================================================================
    # Key index (backends without pattern deletion)
    # ========================================================================

    def _index_keys(self, cache_type: CacheType) -> List[str]:
        raw = self.backend.get(self._index_key(cache_type))
        return json.loads(raw) if raw else []

    def _index_add(self, cache_type: CacheType, full_key: str) -> None:
        """
        Record a key in its type's index, dropping keys that have expired

        The read-modify-write is serialized per TypedCache instance only, so
        the index suits single-process stores. Both shipped backends delete
        by pattern and never use it.
        """
        with self._index_lock:
            keys = [
                k
                for k in self._index_keys(cache_type)
                if k != full_key and self.backend.get(k) is not None
            ]
            keys.append(full_key)
            self.backend.set(self._index_key(cache_type), json.dumps(keys), None)

    # ========================================================================
    # Trigger-based Invalidation
    # ========================================================================

    def invalidate(
        self,
        trigger: InvalidationTrigger,
        user_id: Optional[Any] = None,
        text_hash: Optional[str] = None,
    ) -> int:
        """
        Evict the cache entries that depend on a business event

        Args:
            trigger: Invalidation trigger (unknown values raise ValueError)
            user_id: Restrict user-scoped eviction to one user
            text_hash: Translation entry to evict (translation_update only)

        Returns:
            Number of deleted entries
        """
        trigger = InvalidationTrigger(trigger)
        handler = self._invalidation_handlers[trigger]
        deleted = handler(user_id, text_hash)

        logger.info(
            f"🔄 Cache invalidated by {trigger.value}"
            f"{f' (user {user_id})' if user_id is not None else ''}: {deleted} entries"
        )
        return deleted

    def _on_keyword_change(self, user_id, text_hash) -> int:
        return sum(
            self.clear_type(cache_type)
            for cache_type in (
                CacheType.KEYWORDS,
                CacheType.USER_METRICS,
                CacheType.GROUP_METRICS,
                CacheType.COMMENT_ANALYSIS,
            )
        )

    def _on_user_data_change(self, user_id, text_hash) -> int:
        if user_id is None:
            deleted = self.clear_type(CacheType.USER_METRICS)
            deleted += self.clear_type(CacheType.USER_DATA)
        else:
            deleted = int(self.delete(user_cache_key(user_id), CacheType.USER_METRICS))
            deleted += int(self.delete(user_cache_key(user_id), CacheType.USER_DATA))
            deleted += self.delete_matched(
                f"{user_cache_key(user_id)}:*", CacheType.USER_DATA
            )
        return deleted + self.clear_type(CacheType.GROUP_METRICS)

    def _on_comment_change(self, user_id, text_hash) -> int:
        if user_id is None:
            deleted = self.clear_type(CacheType.USER_METRICS)
        else:
            deleted = int(self.delete(user_cache_key(user_id), CacheType.USER_METRICS))
        deleted += self.clear_type(CacheType.GROUP_METRICS)
        return deleted + self.clear_type(CacheType.COMMENT_ANALYSIS)

    def _on_metrics_recalculation(self, user_id, text_hash) -> int:
        return self.clear_type(CacheType.USER_METRICS) + self.clear_type(
            CacheType.GROUP_METRICS
        )

    def _on_translation_update(self, user_id, text_hash) -> int:
        if not text_hash:
            raise ValueError("translation_update requires a text_hash")
        return int(self.delete(text_hash, CacheType.TRANSLATION))

    # ========================================================================
    # Introspection
    # ========================================================================

    def size_info(self) -> Dict[str, Dict[str, Any]]:
        """Entry counts and approximate byte usage per cache type"""
        info = {}
        for cache_type, policy in CACHE_POLICIES.items():
            index_key = self._index_key(cache_type)
            entries = 0
            size_bytes = 0
            for full_key in self.backend.scan(self._namespace_pattern(cache_type)):
                if full_key == index_key:
                    continue
                raw = self.backend.get(full_key)
                if raw is None:
                    continue
                entries += 1
                size_bytes += len(raw.encode("utf-8"))

            info[cache_type.value] = {
                "entries": entries,
                "size_bytes": size_bytes,
                "max_size_bytes": policy.max_size_bytes,
                "usage_percent": round(size_bytes / policy.max_size_bytes * 100, 2),
                "ttl_seconds": policy.ttl_seconds,
            }
        return info


def user_cache_key(user_id: Any) -> str:
    """Key of user-scoped entries (metrics, user data)"""
    return f"user_{user_id}"


# ============================================================================
# Global Cache Instance (Singleton)
# ============================================================================

_typed_cache: Optional[TypedCache] = None
_cache_lock = threading.Lock()


def get_typed_cache() -> TypedCache:
    """
    Get or create the process-wide TypedCache from configuration

    Returns:
        TypedCache instance
    """
    global _typed_cache

    if _typed_cache is None:
        with _cache_lock:
            if _typed_cache is None:
                from commentflow.app.config import get_config

                config = get_config()
                backend = create_cache_backend(
                    config.cache.backend, config.cache.redis_url
                )
                _typed_cache = TypedCache(backend, environment=config.environment)
                logger.info(
                    f"✅ Typed cache initialized ({config.cache.backend}, "
                    f"namespace={config.environment})"
                )

    return _typed_cache


def reset_typed_cache(cache: Optional[TypedCache] = None) -> None:
    """Replace (or drop) the global cache instance (mainly for testing)"""
    global _typed_cache

    with _cache_lock:
        _typed_cache = cache
