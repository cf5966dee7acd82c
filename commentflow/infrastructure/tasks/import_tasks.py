# commentflow/infrastructure/tasks/import_tasks.py
"""
Import Background Tasks
Imports a user from the content source and fans out comment processing
"""

import logging
from typing import Any, Dict

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from commentflow.app.config import get_config
from commentflow.app.database import db_manager
from commentflow.app.dependencies import ServiceContainer, get_task_publisher
from commentflow.domain.exceptions import (
    ExternalServiceError,
    JobNotFoundError,
    PayloadError,
    ServiceError,
    UserNotFoundError,
    get_retry_delay,
)
from commentflow.infrastructure.tasks.celery_app import (
    celery_app,
    discarded,
    parse_payload,
    run_async,
)
from commentflow.infrastructure.tasks.publisher import BufferedTaskPublisher
from commentflow.services.job_tracker_service import IMPORT_SHARE

logger = logging.getLogger(__name__)

PROVISIONAL_TOTAL = 100
STARTED_PROGRESS = 10


class ImportUserPayload(BaseModel):
    job_id: str = Field(min_length=1)
    username: str = Field(min_length=1)


async def _import_user(payload: ImportUserPayload, publisher: BufferedTaskPublisher) -> Dict[str, Any]:
    import_share = get_config().get("pipeline.import_share", IMPORT_SHARE)
    job_id = payload.job_id

    async with db_manager.session() as session:
        services = ServiceContainer(session, publisher=publisher)
        tracker = services.tracker

        await tracker.start(job_id, provisional_total=PROVISIONAL_TOTAL)
        try:
            await tracker.update_progress(job_id, STARTED_PROGRESS)
            result = await services.importer.import_user(payload.username)

            count = len(result.new_comment_ids)
            total = count + import_share
            await tracker.set_total(job_id, total, metadata=result.to_dict())
            await tracker.update_progress(job_id, total if count == 0 else import_share)

            for comment_id in result.new_comment_ids:
                publisher.enqueue_comment_processing(comment_id, job_id)
            if count == 0:
                publisher.enqueue_metrics_recalculation(
                    "user_import_completed", user_id=result.user_id
                )

            logger.info(f"✅ Import for job {job_id} done, {count} comments queued")
            return {"status": "success", "job_id": job_id, **result.to_dict()}

        except Exception as e:
            try:
                await tracker.mark_failed(job_id, str(e))
            except (ServiceError, SQLAlchemyError) as mark_error:
                logger.error(f"❌ Could not mark job {job_id} failed: {mark_error}")
            raise

        finally:
            await services.aclose()


@celery_app.task(bind=True, name="tasks.import.import_user", max_retries=3)
def import_user(self, job_id: str, username: str) -> Dict[str, Any]:
    """
    Import a user and enqueue one processing task per new comment

    Args:
        job_id: Tracker created by the analysis request
        username: Source username

    Returns:
        Import summary, or a discarded/failed marker
    """
    try:
        payload = parse_payload(ImportUserPayload, job_id=job_id, username=username)
    except PayloadError as e:
        return discarded(self.name, e)

    publisher = BufferedTaskPublisher()
    try:
        result = run_async(_import_user(payload, publisher))
    except (UserNotFoundError, JobNotFoundError) as e:
        return discarded(self.name, e)
    except ExternalServiceError as e:
        delay = get_retry_delay(self.request.retries)
        logger.warning(f"⚠️ Import of '{username}' failed, retrying in {delay}s: {e.message}")
        raise self.retry(exc=e, countdown=delay)

    publisher.flush(get_task_publisher())
    return result
