# commentflow/infrastructure/tasks/metrics_tasks.py
"""
Metrics Background Tasks
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, model_validator
from sqlalchemy.exc import SQLAlchemyError

from commentflow.app.database import db_manager
from commentflow.app.dependencies import ServiceContainer
from commentflow.domain.exceptions import PayloadError, get_retry_delay
from commentflow.infrastructure.cache import CacheType, get_typed_cache
from commentflow.infrastructure.tasks.celery_app import (
    celery_app,
    discarded,
    parse_payload,
    run_async,
)
from commentflow.services.metrics_service import RecalculationTrigger

logger = logging.getLogger(__name__)

USER_SCOPED_TRIGGERS = {
    RecalculationTrigger.USER_IMPORT_COMPLETED,
    RecalculationTrigger.USER_SPECIFIC,
}


class RecalculationPayload(BaseModel):
    trigger: RecalculationTrigger
    user_id: Optional[int] = None

    @model_validator(mode="after")
    def require_user_for_scoped_triggers(self) -> "RecalculationPayload":
        if self.trigger in USER_SCOPED_TRIGGERS and self.user_id is None:
            raise ValueError(f"trigger '{self.trigger.value}' requires user_id")
        return self


async def _recalculate(payload: RecalculationPayload) -> Dict[str, Any]:
    async with db_manager.session() as session:
        services = ServiceContainer(session)
        result = await services.metrics.recalculate(payload.trigger, payload.user_id)
        return {
            "status": "success",
            "trigger": payload.trigger.value,
            "users_recalculated": len(result["users"]),
        }


@celery_app.task(bind=True, name="tasks.metrics.recalculate", max_retries=3)
def recalculate_metrics(
    self,
    trigger: str,
    user_id: Optional[int] = None,
    marker: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Recalculate user and group metrics

    Args:
        trigger: RecalculationTrigger value
        user_id: User for user-scoped triggers
        marker: Debounce marker to release
    """
    if marker:
        get_typed_cache().delete(marker, CacheType.JOB_METRICS)

    try:
        payload = parse_payload(RecalculationPayload, trigger=trigger, user_id=user_id)
    except PayloadError as e:
        return discarded(self.name, e)

    try:
        return run_async(_recalculate(payload))
    except SQLAlchemyError as e:
        raise self.retry(exc=e, countdown=get_retry_delay(self.request.retries))
