"""
Background Tasks Package
Celery-based asynchronous pipeline stages
"""

from commentflow.infrastructure.tasks.celery_app import celery_app, run_async

# Import all task modules to register them
from commentflow.infrastructure.tasks import (
    cache_tasks,
    comment_tasks,
    import_tasks,
    metrics_tasks,
)

__all__ = [
    "celery_app",
    "run_async",
    "cache_tasks",
    "comment_tasks",
    "import_tasks",
    "metrics_tasks",
]
