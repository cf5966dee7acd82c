# commentflow/infrastructure/tasks/comment_tasks.py
"""
Comment Background Tasks
Per-comment processing and full reclassification
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from commentflow.app.database import db_manager
from commentflow.app.dependencies import ServiceContainer, get_task_publisher
from commentflow.domain.exceptions import (
    CommentNotFoundError,
    ExternalServiceError,
    InvalidTransition,
    PayloadError,
    get_retry_delay,
)
from commentflow.infrastructure.tasks.celery_app import (
    celery_app,
    discarded,
    parse_payload,
    run_async,
)
from commentflow.infrastructure.tasks.publisher import BufferedTaskPublisher

logger = logging.getLogger(__name__)


class ProcessCommentPayload(BaseModel):
    comment_id: int = Field(gt=0)
    job_id: Optional[str] = None


async def _process_comment(
    payload: ProcessCommentPayload, publisher: BufferedTaskPublisher
) -> Dict[str, Any]:
    async with db_manager.session() as session:
        services = ServiceContainer(session, publisher=publisher)
        try:
            return await services.comment_processing.process(
                payload.comment_id, payload.job_id
            )
        finally:
            await services.aclose()


@celery_app.task(bind=True, name="tasks.comments.process_comment", max_retries=3)
def process_comment(self, comment_id: int, job_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Translate and classify one comment, then advance its job

    Args:
        comment_id: Comment primary key
        job_id: Tracker of the analysis run

    Returns:
        Processing outcome
    """
    try:
        payload = parse_payload(ProcessCommentPayload, comment_id=comment_id, job_id=job_id)
    except PayloadError as e:
        return discarded(self.name, e)

    publisher = BufferedTaskPublisher()
    try:
        result = run_async(_process_comment(payload, publisher))
    except CommentNotFoundError as e:
        return discarded(self.name, e)
    except InvalidTransition as e:
        logger.warning(f"⚠️ Comment {comment_id} changed concurrently: {e.message}")
        return {"status": "conflict", "comment_id": comment_id, "error": e.message}
    except ExternalServiceError as e:
        raise self.retry(exc=e, countdown=get_retry_delay(self.request.retries))

    publisher.flush(get_task_publisher())
    return result


async def _reclassify_all() -> Dict[str, Any]:
    async with db_manager.session() as session:
        services = ServiceContainer(session)
        return await services.classification.reclassify_all()


@celery_app.task(bind=True, name="tasks.comments.reclassify_all", max_retries=2)
def reclassify_all(self) -> Dict[str, Any]:
    """
    Reclassify every approved or rejected comment with the current keywords

    Schedules one metrics recalculation for the keyword change afterwards.
    """
    try:
        summary = run_async(_reclassify_all())
    except SQLAlchemyError as e:
        raise self.retry(exc=e, countdown=get_retry_delay(self.request.retries))

    get_task_publisher().enqueue_metrics_recalculation("keyword_change")
    return summary
