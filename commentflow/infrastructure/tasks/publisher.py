# commentflow/infrastructure/tasks/publisher.py
"""
Task Publishers
Celery-backed implementation of the TaskPublisher interface
"""

import logging
from typing import Any, List, Optional, Tuple

from commentflow.domain.interfaces import TaskPublisher
from commentflow.infrastructure.cache import CacheType, TypedCache

logger = logging.getLogger(__name__)

METRICS_DEBOUNCE_SECONDS = 2
METRICS_MARKER_TTL = 60


def metrics_marker(trigger: str, user_id: Optional[int]) -> str:
    """Cache key marking a queued, not yet started recalculation"""
    return f"pending:{trigger}:{user_id if user_id is not None else 'all'}"


class CeleryTaskPublisher:
    """
    Publishes pipeline tasks to Celery

    Metrics recalculations are debounced: while one is queued for the same
    trigger and user, further requests are dropped. The task clears the
    marker when it starts.
    """

    def __init__(self, cache: TypedCache, debounce_seconds: int = METRICS_DEBOUNCE_SECONDS):
        self.cache = cache
        self.debounce_seconds = debounce_seconds

    def enqueue_import(self, job_id: str, username: str) -> Any:
        from commentflow.infrastructure.tasks.import_tasks import import_user

        logger.info(f"📤 Enqueue import of '{username}' (job {job_id})")
        return import_user.apply_async(kwargs={"job_id": job_id, "username": username})

    def enqueue_comment_processing(self, comment_id: int, job_id: Optional[str]) -> Any:
        from commentflow.infrastructure.tasks.comment_tasks import process_comment

        return process_comment.apply_async(
            kwargs={"comment_id": comment_id, "job_id": job_id}
        )

    def enqueue_metrics_recalculation(
        self, trigger: str, user_id: Optional[int] = None
    ) -> Any:
        from commentflow.infrastructure.tasks.metrics_tasks import recalculate_metrics

        marker = metrics_marker(trigger, user_id)
        if self.cache.read(marker, CacheType.JOB_METRICS) is not None:
            logger.debug(f"Metrics recalculation already queued ({marker})")
            return None

        self.cache.write(marker, True, CacheType.JOB_METRICS, ttl_seconds=METRICS_MARKER_TTL)
        return recalculate_metrics.apply_async(
            kwargs={"trigger": trigger, "user_id": user_id, "marker": marker},
            countdown=self.debounce_seconds,
        )

    def enqueue_reclassification(self) -> Any:
        from commentflow.infrastructure.tasks.comment_tasks import reclassify_all

        logger.info("📤 Enqueue full reclassification")
        return reclassify_all.apply_async()


class BufferedTaskPublisher:
    """
    Collects publications made while a task's event loop runs

    ``flush`` forwards them in order once the unit of work has finished, so
    follow-up tasks never observe uncommitted rows and eager execution never
    nests event loops.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple, dict]] = []

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))

    def enqueue_import(self, job_id: str, username: str) -> None:
        self._record("enqueue_import", job_id, username)

    def enqueue_comment_processing(self, comment_id: int, job_id: Optional[str]) -> None:
        self._record("enqueue_comment_processing", comment_id, job_id)

    def enqueue_metrics_recalculation(
        self, trigger: str, user_id: Optional[int] = None
    ) -> None:
        self._record("enqueue_metrics_recalculation", trigger, user_id=user_id)

    def enqueue_reclassification(self) -> None:
        self._record("enqueue_reclassification")

    def flush(self, target: TaskPublisher) -> int:
        """Forward buffered calls to ``target``; returns how many were sent"""
        calls, self.calls = self.calls, []
        for method, args, kwargs in calls:
            getattr(target, method)(*args, **kwargs)
        if calls:
            logger.debug(f"📤 Flushed {len(calls)} task publications")
        return len(calls)
