# commentflow/infrastructure/tasks/celery_app.py
"""
Celery Application Factory
Creates and configures the Celery app with project settings
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, Type, TypeVar

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry
from kombu import Exchange, Queue
from pydantic import BaseModel, ValidationError

from commentflow.app.config import get_config
from commentflow.domain.exceptions import PayloadError
from commentflow.infrastructure.tasks.performance_monitor import get_task_monitor

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = TypeVar("P", bound=BaseModel)

TASK_MODULES = [
    "commentflow.infrastructure.tasks.import_tasks",
    "commentflow.infrastructure.tasks.comment_tasks",
    "commentflow.infrastructure.tasks.metrics_tasks",
    "commentflow.infrastructure.tasks.cache_tasks",
]


def create_celery_app(app_name: str = "commentflow") -> Celery:
    """
    Create and configure Celery application

    Args:
        app_name: Application name for Celery

    Returns:
        Configured Celery instance
    """
    config = get_config()
    celery_config = config.celery

    celery_app = Celery(
        app_name,
        broker=celery_config.broker_url,
        backend=celery_config.result_backend,
        include=TASK_MODULES,
    )

    celery_app.conf.update(
        # Serialization
        task_serializer=celery_config.task_serializer,
        result_serializer=celery_config.result_serializer,
        accept_content=celery_config.accept_content,
        # Task execution
        task_always_eager=celery_config.always_eager,
        task_eager_propagates=celery_config.always_eager,
        task_track_started=celery_config.task_track_started,
        task_time_limit=celery_config.task_time_limit,
        task_soft_time_limit=celery_config.task_soft_time_limit,
        task_acks_late=celery_config.task_acks_late,
        task_reject_on_worker_lost=celery_config.task_reject_on_worker_lost,
        # Retry settings
        task_default_retry_delay=celery_config.task_default_retry_delay,
        # Result backend
        result_expires=celery_config.result_expires,
        # Worker settings
        worker_prefetch_multiplier=celery_config.worker_prefetch_multiplier,
        worker_max_tasks_per_child=celery_config.worker_max_tasks_per_child,
        worker_concurrency=celery_config.worker_concurrency,
        # Logging
        worker_hijack_root_logger=celery_config.worker_hijack_root_logger,
        worker_log_format=celery_config.worker_log_format,
        # Timezone
        timezone="UTC",
        enable_utc=True,
        # Task routing
        task_default_queue=celery_config.task_default_queue,
        task_routes=celery_config.task_routes,
        # Periodic cache statistics
        beat_schedule={
            "log-cache-stats": {
                "task": "tasks.cache.log_stats",
                "schedule": config.cache.monitor_interval_minutes * 60.0,
            },
        },
    )

    default_exchange = Exchange("default", type="direct")

    celery_app.conf.task_queues = (
        Queue("default", exchange=default_exchange, routing_key="default"),
        Queue("import", exchange=default_exchange, routing_key="import"),
        Queue("comments", exchange=default_exchange, routing_key="comments"),
        Queue("metrics", exchange=default_exchange, routing_key="metrics"),
    )

    logger.info(f"✅ Celery app initialized: {app_name}")
    logger.info(f"📡 Broker: {celery_config.broker_url}")
    logger.info(f"🔄 Eager mode: {celery_config.always_eager}")

    return celery_app


# Create global Celery instance
celery_app = create_celery_app()


# ============================================================================
# Signal Handlers
# ============================================================================


def _monitoring_enabled() -> bool:
    return get_config().task_monitor.enabled


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, **extra):
    logger.info(f"🚀 Task started: {task.name} [ID: {task_id}]")
    if _monitoring_enabled():
        get_task_monitor().start(task_id, task.name)


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, state=None, **extra):
    logger.info(f"✅ Task finished: {task.name} [ID: {task_id}] state={state}")
    if _monitoring_enabled():
        get_task_monitor().finish(task_id, task.name, state)


@task_retry.connect
def task_retry_handler(sender=None, request=None, reason=None, **extra):
    logger.warning(f"🔄 Task retry scheduled: {sender.name} ({reason})")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, **extra):
    logger.error(f"❌ Task failed: {sender.name} [ID: {task_id}]: {exception}")
    if _monitoring_enabled():
        get_task_monitor().record_failure(sender.name, task_id, exception)


# ============================================================================
# Utility Functions
# ============================================================================


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine to completion from a synchronous task

    Each call gets a fresh event loop, so pooled database connections are
    disposed before the loop closes.
    """
    from commentflow.app.database import db_manager

    async def _runner() -> T:
        try:
            return await coro
        finally:
            await db_manager.dispose()

    return asyncio.run(_runner())


def parse_payload(model: Type[P], **data: Any) -> P:
    """
    Validate task arguments

    Raises:
        PayloadError: Arguments cannot be deserialized (never retried)
    """
    try:
        return model(**data)
    except ValidationError as e:
        raise PayloadError(
            f"Invalid {model.__name__}: {e.errors(include_url=False)}",
            details={"payload": {k: repr(v) for k, v in data.items()}},
        ) from e


def discarded(task_name: str, error: Exception) -> Dict[str, Any]:
    """Result of a task dropped without retry"""
    message = getattr(error, "message", str(error))
    logger.error(f"🗑️ Discarding {task_name}: {message}")
    return {"status": "discarded", "error": message}
