"""
Typed cache layer
"""

from commentflow.infrastructure.cache.backends import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
    create_cache_backend,
)
from commentflow.infrastructure.cache.cache_types import (
    CACHE_POLICIES,
    CachePolicy,
    CacheType,
    InvalidationTrigger,
)
from commentflow.infrastructure.cache.monitor import CacheMonitor
from commentflow.infrastructure.cache.stats import CacheStats
from commentflow.infrastructure.cache.typed_cache import (
    TypedCache,
    get_typed_cache,
    reset_typed_cache,
    user_cache_key,
)

__all__ = [
    "CacheBackend",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "create_cache_backend",
    "CACHE_POLICIES",
    "CachePolicy",
    "CacheType",
    "InvalidationTrigger",
    "CacheMonitor",
    "CacheStats",
    "TypedCache",
    "get_typed_cache",
    "reset_typed_cache",
    "user_cache_key",
]
