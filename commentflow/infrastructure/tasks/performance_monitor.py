# commentflow/infrastructure/tasks/performance_monitor.py
"""
Task Performance Monitor
Duration, memory and failure-rate tracking for Celery tasks
"""

import logging
import resource
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from commentflow.app.config import TaskMonitorSettings, get_config
from commentflow.infrastructure.cache import CacheType, TypedCache, get_typed_cache
from commentflow.infrastructure.resilience.alerts import AlertSink, LoggingAlertSink, Severity

logger = logging.getLogger(__name__)

FAILURE_RECORD_TTL = 24 * 3600
FAILURE_COUNTER_TTL = 25 * 3600


def current_memory_mb() -> float:
    """Peak resident set size of this process in MB"""
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return peak / divisor


class TaskPerformanceMonitor:
    """
    Compares each task run against per-task thresholds

    Start records are kept per worker process, keyed by task id, because
    prerun and postrun signals fire in the process that runs the task.
    Failure counters live in the ``job_metrics`` cache type so all workers
    share them.

    Usage:
        monitor = get_task_monitor()
        monitor.start(task_id, "tasks.import.import_user")
        report = monitor.finish(task_id, "tasks.import.import_user", "SUCCESS")
    """

    def __init__(
        self,
        cache: TypedCache,
        alert_sink: AlertSink,
        settings: Optional[TaskMonitorSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        memory_reader: Callable[[], float] = current_memory_mb,
    ):
        self.cache = cache
        self.alert_sink = alert_sink
        self.settings = settings or get_config().task_monitor
        self.clock = clock
        self.memory_reader = memory_reader

        self._running: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    # ========================================================================
    # Run Tracking
    # ========================================================================

    def start(self, task_id: str, task_name: str) -> None:
        start_memory = self.memory_reader()
        with self._lock:
            self._running[task_id] = {"started": self.clock(), "memory": start_memory}
        logger.debug(f"⏱️ Monitoring {task_name} [{task_id}] ({start_memory:.1f} MB)")

    def finish(
        self, task_id: str, task_name: str, state: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Close a run and alert on threshold overruns

        Returns:
            Performance report, or None when the run was never started here
        """
        with self._lock:
            started = self._running.pop(task_id, None)
        if started is None:
            return None

        end_memory = self.memory_reader()
        duration = self.clock() - started["started"]
        memory_used = end_memory - started["memory"]

        issues = self._check_thresholds(task_name, task_id, duration, memory_used)
        report = {
            "task": task_name,
            "task_id": task_id,
            "state": state,
            "duration_seconds": round(duration, 2),
            "memory_used_mb": round(memory_used, 2),
            "start_memory_mb": round(started["memory"], 2),
            "end_memory_mb": round(end_memory, 2),
            "performance_status": ",".join(issues) or "normal",
        }
        logger.info(
            f"📊 {task_name} [{task_id}] took {report['duration_seconds']}s, "
            f"{report['memory_used_mb']} MB ({report['performance_status']})"
        )
        return report

    def _check_thresholds(
        self, task_name: str, task_id: str, duration: float, memory_used: float
    ) -> List[str]:
        issues = []

        duration_threshold = self.settings.duration_thresholds.get(task_name)
        if duration_threshold is not None and duration > duration_threshold:
            issues.append("slow")
            logger.warning(
                f"⚠️ {task_name} exceeded {duration_threshold}s: {duration:.2f}s"
            )
            self.alert_sink.notify(
                "slow_execution",
                {
                    "subject": task_name,
                    "task_id": task_id,
                    "duration_seconds": round(duration, 2),
                    "threshold_seconds": duration_threshold,
                },
                Severity.MEDIUM,
            )

        memory_threshold = self.settings.memory_thresholds_mb.get(task_name)
        if memory_threshold is not None and memory_used > memory_threshold:
            issues.append("memory_intensive")
            logger.warning(
                f"⚠️ {task_name} exceeded {memory_threshold} MB: {memory_used:.2f} MB"
            )
            self.alert_sink.notify(
                "high_memory_usage",
                {
                    "subject": task_name,
                    "task_id": task_id,
                    "memory_used_mb": round(memory_used, 2),
                    "threshold_mb": memory_threshold,
                },
                Severity.MEDIUM,
            )

        return issues

    # ========================================================================
    # Failures
    # ========================================================================

    def record_failure(self, task_name: str, task_id: str, error: BaseException) -> int:
        """
        Store a failure and bump the task's daily failure counter

        Returns:
            Failures of this task recorded today (0 if the store is down)
        """
        now = datetime.now(timezone.utc)
        self.cache.write(
            f"failure:{task_id}",
            {
                "task": task_name,
                "task_id": task_id,
                "error_class": type(error).__name__,
                "error_message": str(error),
                "failure_time": now.isoformat(),
            },
            CacheType.JOB_METRICS,
            ttl_seconds=FAILURE_RECORD_TTL,
        )

        failures = self.cache.increment(
            f"failures:{task_name}:{now.date().isoformat()}",
            CacheType.JOB_METRICS,
            ttl_seconds=FAILURE_COUNTER_TTL,
        )
        if failures > self.settings.failure_alert_threshold:
            self.alert_sink.notify(
                "high_failure_rate",
                {
                    "subject": task_name,
                    "failures_today": failures,
                    "threshold": self.settings.failure_alert_threshold,
                },
                Severity.HIGH,
            )
        return failures


# ============================================================================
# Global Monitor Instance (Singleton)
# ============================================================================

_task_monitor: Optional[TaskPerformanceMonitor] = None
_monitor_lock = threading.Lock()


def get_task_monitor() -> TaskPerformanceMonitor:
    """Get or create the process-wide task monitor"""
    global _task_monitor

    if _task_monitor is None:
        with _monitor_lock:
            if _task_monitor is None:
                cache = get_typed_cache()
                _task_monitor = TaskPerformanceMonitor(cache, LoggingAlertSink(cache))

    return _task_monitor


def reset_task_monitor() -> None:
    global _task_monitor
    with _monitor_lock:
        _task_monitor = None
