# commentflow/infrastructure/cache/stats.py
"""
Cache Statistics
Hit/miss/write/delete counters kept in the cache store itself
"""

import logging
from typing import Dict

import redis

from commentflow.infrastructure.cache.backends import CacheBackend

logger = logging.getLogger(__name__)

COUNTERS = ("hits", "misses", "writes", "deletes")


class CacheStats:
    """
    Aggregate cache counters

    Every update is a single atomic increment on the backend, so counters are
    shared by all processes using the same store and never lose updates.
    """

    def __init__(self, backend: CacheBackend, namespace: str):
        self.backend = backend
        self.namespace = namespace

    def _key(self, counter: str) -> str:
        return f"{self.namespace}:cache_stats:{counter}"

    def record(self, counter: str, amount: int = 1) -> int:
        """Add to a counter; a store outage loses the update instead of raising"""
        if counter not in COUNTERS:
            raise ValueError(f"Unknown cache counter: {counter}")
        try:
            return self.backend.increment(self._key(counter), amount)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache counter {counter} not recorded: {e}")
            return 0

    def record_hit(self) -> None:
        self.record("hits")

    def record_miss(self) -> None:
        self.record("misses")

    def record_write(self) -> None:
        self.record("writes")

    def record_delete(self, amount: int = 1) -> None:
        if amount > 0:
            self.record("deletes", amount)

    def counters(self) -> Dict[str, int]:
        return {name: int(self.backend.get(self._key(name)) or 0) for name in COUNTERS}

    def snapshot(self) -> Dict[str, float]:
        """
        Current counters plus derived ratios

        Returns:
            Dict with hits, misses, writes, deletes, total_reads,
            total_operations and hit_ratio (percentage, 0 without reads)
        """
        data = self.counters()
        total_reads = data["hits"] + data["misses"]
        hit_ratio = round(data["hits"] / total_reads * 100, 2) if total_reads else 0.0

        return {
            **data,
            "total_reads": total_reads,
            "total_operations": total_reads + data["writes"] + data["deletes"],
            "hit_ratio": hit_ratio,
        }

    def reset(self) -> None:
        for name in COUNTERS:
            self.backend.delete(self._key(name))
        logger.info("🔄 Cache statistics reset")
