# commentflow/infrastructure/cache/monitor.py
"""
Cache Monitor
Health scoring, recommendations and alerts derived from cache statistics
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from commentflow.infrastructure.cache.cache_types import CacheType
from commentflow.infrastructure.cache.typed_cache import TypedCache

logger = logging.getLogger(__name__)

HIT_RATIO_WARNING = 70.0
HIT_RATIO_CRITICAL = 50.0
CHURN_OPERATIONS = 10_000
CHURN_HIT_RATIO = 30.0


class CacheMonitor:
    """Turns raw cache counters into a health report"""

    def __init__(
        self,
        cache: TypedCache,
        warning_threshold: float = HIT_RATIO_WARNING,
        critical_threshold: float = HIT_RATIO_CRITICAL,
    ):
        self.cache = cache
        self.warning_threshold = warning_threshold
        self.critical_threshold = critical_threshold

    def health_report(self) -> Dict[str, Any]:
        """
        Build a full health report

        Returns:
            Dict with overall_health, statistics, performance_metrics,
            size_information, recommendations and alerts
        """
        stats = self.cache.stats.snapshot()

        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "overall_health": self.overall_health(stats),
            "statistics": stats,
            "performance_metrics": self.performance_metrics(stats),
            "size_information": self.cache.size_info(),
            "recommendations": self.recommendations(stats),
            "alerts": self.alerts(stats),
        }

    def overall_health(self, stats: Optional[Dict[str, Any]] = None) -> float:
        """Weighted health score in [0, 100]"""
        stats = stats or self.cache.stats.snapshot()
        score = stats["hit_ratio"] * 0.7 + self.efficiency_score(stats) * 0.3
        return round(min(score, 100.0), 1)

    @staticmethod
    def efficiency_score(stats: Dict[str, Any]) -> float:
        """Reads-per-write ratio (up to 50) plus half the hit ratio"""
        total_reads = stats["hits"] + stats["misses"]
        if total_reads == 0:
            return 100.0

        ratio_score = min(total_reads / max(stats["writes"], 1) / 3 * 50, 50.0)
        return round(ratio_score + stats["hit_ratio"] * 0.5, 2)

    def performance_metrics(self, stats: Dict[str, Any]) -> Dict[str, Any]:
        total_reads = stats["total_reads"]
        return {
            "hit_ratio": stats["hit_ratio"],
            "miss_ratio": round(100 - stats["hit_ratio"], 2) if total_reads else 0.0,
            "read_write_ratio": round(total_reads / max(stats["writes"], 1), 2),
            "efficiency_score": self.efficiency_score(stats),
            "status": self._status(stats["hit_ratio"], total_reads),
        }

    def _status(self, hit_ratio: float, total_reads: int) -> str:
        if total_reads == 0:
            return "idle"
        if hit_ratio < self.critical_threshold:
            return "critical"
        if hit_ratio < self.warning_threshold:
            return "warning"
        return "healthy"

    def recommendations(self, stats: Dict[str, Any]) -> List[str]:
        recs = []
        hit_ratio = stats["hit_ratio"]

        if stats["total_reads"] and hit_ratio < self.critical_threshold:
            recs.append(
                "Hit ratio is critically low: review cache keys and consider warming "
                "frequently accessed data"
            )
        elif stats["total_reads"] and hit_ratio < self.warning_threshold:
            recs.append("Hit ratio is below target: consider longer TTLs for stable data")

        if stats["misses"] > stats["hits"] * 2:
            recs.append("Misses dominate reads: schedule cache warming")

        if stats["writes"] > stats["hits"]:
            recs.append("More writes than hits: cached values are rarely reused")

        if not recs:
            recs.append("Cache performance is within expected parameters")
        return recs

    def alerts(self, stats: Dict[str, Any]) -> List[Dict[str, Any]]:
        alerts = []
        hit_ratio = stats["hit_ratio"]

        if stats["total_reads"] and hit_ratio < self.critical_threshold:
            alerts.append(
                {
                    "severity": "critical",
                    "type": "low_hit_ratio",
                    "message": f"Cache hit ratio critically low: {hit_ratio}%",
                }
            )

        if stats["total_operations"] > CHURN_OPERATIONS and hit_ratio < CHURN_HIT_RATIO:
            alerts.append(
                {
                    "severity": "warning",
                    "type": "cache_churn",
                    "message": (
                        f"High cache churn: {stats['total_operations']} operations "
                        f"at {hit_ratio}% hit ratio"
                    ),
                }
            )
        return alerts

    def benchmark(self, operations: int = 100) -> Dict[str, Any]:
        """
        Time write/read/delete round trips against the live store

        Args:
            operations: Number of operations of each kind

        Returns:
            Average milliseconds per operation kind
        """
        run_id = uuid.uuid4().hex[:8]
        keys = [f"benchmark_{run_id}_{i}" for i in range(operations)]
        timings = {}

        start = time.perf_counter()
        for i, key in enumerate(keys):
            self.cache.write(key, {"i": i, "payload": "x" * 64}, CacheType.API_RESPONSE)
        timings["write"] = time.perf_counter() - start

        start = time.perf_counter()
        for key in keys:
            self.cache.read(key, CacheType.API_RESPONSE)
        timings["read"] = time.perf_counter() - start

        start = time.perf_counter()
        for key in keys:
            self.cache.delete(key, CacheType.API_RESPONSE)
        timings["delete"] = time.perf_counter() - start

        result = {
            "operations": operations,
            **{
                f"avg_{name}_ms": round(elapsed / max(operations, 1) * 1000, 4)
                for name, elapsed in timings.items()
            },
        }
        logger.info(f"⏱️ Cache benchmark: {result}")
        return result

    def log_periodic_stats(self) -> Dict[str, Any]:
        """Log a one-line summary; escalate when the cache is unhealthy"""
        stats = self.cache.stats.snapshot()
        health = self.overall_health(stats)
        message = (
            f"📊 Cache stats: health={health} hit_ratio={stats['hit_ratio']}% "
            f"hits={stats['hits']} misses={stats['misses']} writes={stats['writes']}"
        )

        if self._status(stats["hit_ratio"], stats["total_reads"]) == "critical":
            logger.error(message)
        elif self._status(stats["hit_ratio"], stats["total_reads"]) == "warning":
            logger.warning(message)
        else:
            logger.info(message)

        return {"overall_health": health, **stats}
