# tests/unit/test_typed_cache.py
"""
Unit Tests for the typed cache layer
Backends, TypedCache policies/invalidation, statistics and monitor
"""

import threading

import pytest
import redis

from commentflow.infrastructure.cache import (
    CACHE_POLICIES,
    CacheMonitor,
    CacheType,
    InvalidationTrigger,
    MemoryCacheBackend,
    TypedCache,
    create_cache_backend,
    user_cache_key,
)
from commentflow.infrastructure.cache.cache_types import MB, get_policy


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class IndexOnlyBackend(MemoryCacheBackend):
    """Backend without glob deletion, like stores lacking SCAN"""

    supports_pattern_delete = False


class CounterlessBackend(MemoryCacheBackend):
    """Backend that stores values but cannot increment"""

    def increment(self, key, amount=1, ttl_seconds=None):
        raise redis.ConnectionError("connection refused")


# ============================================================================
# Backends
# ============================================================================


class TestMemoryCacheBackend:
    def test_expired_items_are_invisible(self):
        clock = FakeClock()
        backend = MemoryCacheBackend(clock=clock)
        backend.set("k", "v", ttl_seconds=10)

        assert backend.get("k") == "v"
        clock.now += 10
        assert backend.get("k") is None

    def test_increment_keeps_existing_expiry(self):
        clock = FakeClock()
        backend = MemoryCacheBackend(clock=clock)

        assert backend.increment("n", ttl_seconds=5) == 1
        assert backend.increment("n", 2) == 3
        clock.now += 5
        assert backend.increment("n") == 1

    def test_concurrent_increments_are_exact(self):
        backend = MemoryCacheBackend()

        def bump():
            for _ in range(500):
                backend.increment("counter")

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert backend.get("counter") == "4000"

    def test_clear_expired(self):
        clock = FakeClock()
        backend = MemoryCacheBackend(clock=clock)
        backend.set("short", "1", ttl_seconds=1)
        backend.set("forever", "2")
        clock.now += 2

        assert backend.clear_expired() == 1
        assert backend.get("forever") == "2"

    def test_factory_rejects_unknown_backend(self):
        with pytest.raises(ValueError):
            create_cache_backend("memcached")

        with pytest.raises(ValueError):
            create_cache_backend("redis", redis_url=None)


# ============================================================================
# TypedCache
# ============================================================================


class TestTypedCache:
    def test_keys_are_namespaced(self, cache):
        assert cache.build_key("user_1", CacheType.USER_METRICS) == "test:user_metrics:user_1"

    def test_write_read_roundtrip(self, cache):
        assert cache.write("user_1", {"total": 3}, CacheType.USER_METRICS) is True
        assert cache.read("user_1", CacheType.USER_METRICS) == {"total": 3}
        assert cache.read("user_1", CacheType.GROUP_METRICS) is None

    def test_oversized_value_is_rejected_without_storing(self, cache):
        payload = "x" * (get_policy(CacheType.KEYWORDS).max_size_bytes + 1)

        assert cache.write("big", payload, CacheType.KEYWORDS) is False
        assert cache.read("big", CacheType.KEYWORDS) is None
        assert cache.stats.counters()["writes"] == 0

    def test_translation_entries_never_expire(self):
        clock = FakeClock()
        cache = TypedCache(MemoryCacheBackend(clock=clock), environment="test")
        cache.write("hash", "olá", CacheType.TRANSLATION)
        cache.write("user_1", {"a": 1}, CacheType.USER_METRICS)

        clock.now += 10 * 24 * 3600

        assert cache.read("hash", CacheType.TRANSLATION) == "olá"
        assert cache.read("user_1", CacheType.USER_METRICS) is None

    def test_fetch_computes_once(self, cache):
        calls = []

        def compute():
            calls.append(1)
            return ["bom"]

        assert cache.fetch("active", CacheType.KEYWORDS, compute) == ["bom"]
        assert cache.fetch("active", CacheType.KEYWORDS, compute) == ["bom"]
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_async_does_not_store_none(self, cache):
        async def compute():
            return None

        assert await cache.fetch_async("missing", CacheType.USER_DATA, compute) is None
        assert cache.stats.counters()["writes"] == 0

    def test_clear_type_only_touches_one_namespace(self, cache):
        cache.write("a", 1, CacheType.KEYWORDS)
        cache.write("b", 2, CacheType.KEYWORDS)
        cache.write("c", 3, CacheType.USER_DATA)

        assert cache.clear_type(CacheType.KEYWORDS) == 2
        assert cache.read("c", CacheType.USER_DATA) == 3

    def test_clear_all_resets_statistics(self, cache):
        cache.write("a", 1, CacheType.KEYWORDS)
        cache.read("a", CacheType.KEYWORDS)

        cache.clear_all()

        assert cache.stats.counters() == {"hits": 0, "misses": 0, "writes": 0, "deletes": 0}

    def test_size_info_reports_every_type(self, cache):
        cache.write("a", "abc", CacheType.KEYWORDS)
        info = cache.size_info()

        assert set(info) == {t.value for t in CACHE_POLICIES}
        assert info["keywords"]["entries"] == 1
        assert info["keywords"]["size_bytes"] == len('"abc"')
        assert info["keywords"]["max_size_bytes"] == 1 * MB
        assert info["translation"]["ttl_seconds"] is None


class TestInvalidation:
    def _fill(self, cache):
        cache.write(user_cache_key(1), {"u": 1}, CacheType.USER_METRICS)
        cache.write(user_cache_key(2), {"u": 2}, CacheType.USER_METRICS)
        cache.write("all", {"g": 1}, CacheType.GROUP_METRICS)
        cache.write("active", ["bom"], CacheType.KEYWORDS)
        cache.write("c1", {"x": 1}, CacheType.COMMENT_ANALYSIS)
        cache.write(user_cache_key(1), {"d": 1}, CacheType.USER_DATA)
        cache.write(f"{user_cache_key(1)}:posts", [1], CacheType.USER_DATA)
        cache.write("h1", "t", CacheType.TRANSLATION)

    def test_keyword_change(self, cache):
        self._fill(cache)
        cache.invalidate(InvalidationTrigger.KEYWORD_CHANGE)

        assert cache.read("active", CacheType.KEYWORDS) is None
        assert cache.read("all", CacheType.GROUP_METRICS) is None
        assert cache.read(user_cache_key(1), CacheType.USER_METRICS) is None
        assert cache.read("c1", CacheType.COMMENT_ANALYSIS) is None
        assert cache.read("h1", CacheType.TRANSLATION) == "t"

    def test_user_data_change_for_one_user(self, cache):
        self._fill(cache)
        cache.invalidate(InvalidationTrigger.USER_DATA_CHANGE, user_id=1)

        assert cache.read(user_cache_key(1), CacheType.USER_METRICS) is None
        assert cache.read(user_cache_key(1), CacheType.USER_DATA) is None
        assert cache.read(f"{user_cache_key(1)}:posts", CacheType.USER_DATA) is None
        assert cache.read("all", CacheType.GROUP_METRICS) is None
        assert cache.read(user_cache_key(2), CacheType.USER_METRICS) == {"u": 2}

    def test_comment_change(self, cache):
        self._fill(cache)
        cache.invalidate(InvalidationTrigger.COMMENT_CHANGE, user_id=2)

        assert cache.read(user_cache_key(2), CacheType.USER_METRICS) is None
        assert cache.read(user_cache_key(1), CacheType.USER_METRICS) == {"u": 1}
        assert cache.read("c1", CacheType.COMMENT_ANALYSIS) is None

    def test_metrics_recalculation(self, cache):
        self._fill(cache)
        cache.invalidate(InvalidationTrigger.METRICS_RECALCULATION)

        assert cache.read(user_cache_key(1), CacheType.USER_METRICS) is None
        assert cache.read("all", CacheType.GROUP_METRICS) is None
        assert cache.read("active", CacheType.KEYWORDS) == ["bom"]

    def test_translation_update_requires_hash(self, cache):
        self._fill(cache)

        with pytest.raises(ValueError):
            cache.invalidate(InvalidationTrigger.TRANSLATION_UPDATE)

        assert cache.invalidate(InvalidationTrigger.TRANSLATION_UPDATE, text_hash="h1") == 1

    def test_unknown_trigger(self, cache):
        with pytest.raises(ValueError):
            cache.invalidate("everything")

    def test_pattern_fallback_clears_whole_type(self):
        cache = TypedCache(IndexOnlyBackend(), environment="test")
        cache.write(user_cache_key(1), {"d": 1}, CacheType.USER_DATA)
        cache.write(user_cache_key(2), {"d": 2}, CacheType.USER_DATA)

        deleted = cache.delete_matched("user_1:*", CacheType.USER_DATA)

        assert deleted == 2
        assert cache.read(user_cache_key(2), CacheType.USER_DATA) is None

    def test_index_drops_expired_keys(self):
        clock = FakeClock()
        cache = TypedCache(IndexOnlyBackend(clock=clock), environment="test")
        cache.write("old", 1, CacheType.USER_DATA, ttl_seconds=10)
        clock.now += 20

        cache.write("new", 2, CacheType.USER_DATA, ttl_seconds=10)
        cache.write("new", 3, CacheType.USER_DATA, ttl_seconds=10)

        assert cache._index_keys(CacheType.USER_DATA) == [
            cache.build_key("new", CacheType.USER_DATA)
        ]
        assert cache.clear_type(CacheType.USER_DATA) == 1


# ============================================================================
# Store outages
# ============================================================================


class TestStoreOutage:
    def test_operations_degrade_without_raising(self, unreachable_cache):
        assert unreachable_cache.write("k", {"v": 1}, CacheType.KEYWORDS) is False
        assert unreachable_cache.read("k", CacheType.KEYWORDS) is None
        assert unreachable_cache.increment("failures", CacheType.JOB_METRICS) == 0

    def test_lost_counters_do_not_fail_writes(self):
        cache = TypedCache(CounterlessBackend(), environment="test")

        assert cache.write("k", {"v": 1}, CacheType.KEYWORDS) is True
        assert cache.read("k", CacheType.KEYWORDS) == {"v": 1}
        assert cache.read("missing", CacheType.KEYWORDS) is None


# ============================================================================
# Statistics
# ============================================================================


class TestCacheStats:
    def test_hit_ratio(self, cache):
        cache.write("a", 1, CacheType.KEYWORDS)
        cache.read("a", CacheType.KEYWORDS)
        cache.read("a", CacheType.KEYWORDS)
        cache.read("a", CacheType.KEYWORDS)
        cache.read("missing", CacheType.KEYWORDS)

        snapshot = cache.stats.snapshot()

        assert snapshot["hits"] == 3
        assert snapshot["misses"] == 1
        assert snapshot["hit_ratio"] == 75.0
        assert snapshot["total_operations"] == 5

    def test_empty_snapshot(self, cache):
        assert cache.stats.snapshot()["hit_ratio"] == 0.0

    def test_unknown_counter(self, cache):
        with pytest.raises(ValueError):
            cache.stats.record("evictions")

    def test_counters_shared_between_instances(self):
        backend = MemoryCacheBackend()
        worker_a = TypedCache(backend, environment="test")
        worker_b = TypedCache(backend, environment="test")

        worker_a.write("k", 1, CacheType.KEYWORDS)
        worker_b.read("k", CacheType.KEYWORDS)

        assert worker_a.stats.counters()["hits"] == 1
        assert worker_b.stats.counters()["writes"] == 1

    def test_concurrent_hits_are_not_lost(self, cache):
        def record():
            for _ in range(250):
                cache.stats.record_hit()

        threads = [threading.Thread(target=record) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.stats.counters()["hits"] == 1000


# ============================================================================
# Monitor
# ============================================================================


class TestCacheMonitor:
    def _reads(self, cache, hits: int, misses: int):
        cache.write("k", 1, CacheType.KEYWORDS)
        for _ in range(hits):
            cache.read("k", CacheType.KEYWORDS)
        for _ in range(misses):
            cache.read("nope", CacheType.KEYWORDS)

    def test_idle_cache(self, cache):
        monitor = CacheMonitor(cache, warning_threshold=70, critical_threshold=50)
        report = monitor.health_report()

        assert report["performance_metrics"]["status"] == "idle"
        assert report["alerts"] == []
        assert report["recommendations"]

    def test_critical_hit_ratio_raises_alert(self, cache):
        self._reads(cache, hits=1, misses=4)
        monitor = CacheMonitor(cache, warning_threshold=70, critical_threshold=50)

        report = monitor.health_report()

        assert report["performance_metrics"]["status"] == "critical"
        assert any(a["type"] == "low_hit_ratio" for a in report["alerts"])

    def test_healthy_hit_ratio(self, cache):
        self._reads(cache, hits=9, misses=1)
        monitor = CacheMonitor(cache, warning_threshold=70, critical_threshold=50)

        assert monitor.performance_metrics(cache.stats.snapshot())["status"] == "healthy"
        assert 0 <= monitor.overall_health() <= 100

    def test_benchmark_cleans_up(self, cache):
        result = CacheMonitor(cache).benchmark(operations=5)

        assert result["operations"] == 5
        assert {"avg_write_ms", "avg_read_ms", "avg_delete_ms"} <= set(result)
        assert cache.size_info()["api_response"]["entries"] == 0

    def test_log_periodic_stats(self, cache):
        self._reads(cache, hits=2, misses=0)
        summary = CacheMonitor(cache).log_periodic_stats()

        assert summary["hits"] == 2
        assert "overall_health" in summary
