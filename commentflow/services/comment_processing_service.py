# commentflow/services/comment_processing_service.py
"""
Comment Processing Service
Per-comment pipeline: start processing, translate, classify, advance the job
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import CommentStatus
from commentflow.domain.comment_state_machine import CommentEvent
from commentflow.domain.exceptions import (
    ClassificationError,
    CommentNotFoundError,
    InvalidTransition,
)
from commentflow.domain.interfaces import TaskPublisher
from commentflow.infrastructure.repositories import CommentRepository
from commentflow.services.classification_service import ClassificationService
from commentflow.services.comment_lifecycle_service import CommentLifecycleService
from commentflow.services.job_tracker_service import IMPORT_SHARE, JobTrackerService
from commentflow.services.translation_service import TranslationService

logger = logging.getLogger(__name__)


class CommentProcessingService:
    """
    Runs one comment through the pipeline

    Order within a comment is fixed (start, translate, classify); different
    comments run concurrently in separate workers.
    """

    def __init__(
        self,
        session: AsyncSession,
        lifecycle: CommentLifecycleService,
        translation: TranslationService,
        classification: ClassificationService,
        tracker: Optional[JobTrackerService] = None,
        publisher: Optional[TaskPublisher] = None,
        import_share: int = IMPORT_SHARE,
    ):
        self.comments = CommentRepository(session)
        self.lifecycle = lifecycle
        self.translation = translation
        self.classification = classification
        self.tracker = tracker or JobTrackerService(session)
        self.publisher = publisher
        self.import_share = import_share

    async def process(self, comment_id: int, job_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Process one comment and record the step on its job

        Args:
            comment_id: Comment primary key
            job_id: Tracker to advance (None for ad-hoc processing)

        Returns:
            {comment_id, outcome, status}; outcome is one of processed,
            skipped, already_processed, classification_failed

        Raises:
            CommentNotFoundError: Unknown comment
            InvalidTransition: Comment status changed under the pipeline
        """
        comment, user_id = await self.comments.get_with_owner(comment_id)
        if comment is None:
            raise CommentNotFoundError(
                f"Comment {comment_id} not found", details={"comment_id": comment_id}
            )

        outcome = await self._run_pipeline(comment, user_id)

        if job_id:
            await self._advance_job(job_id, user_id)

        return {
            "comment_id": comment_id,
            "outcome": outcome,
            "status": comment.status.value,
        }

    async def _run_pipeline(self, comment, user_id: Optional[int]) -> str:
        if comment.is_terminal:
            logger.debug(f"Comment {comment.id} already {comment.status.value}")
            return "already_processed"

        if comment.status == CommentStatus.NEW:
            if not self.lifecycle.can_fire(comment, CommentEvent.START_PROCESSING):
                logger.warning(
                    f"⚠️ Comment {comment.id} is missing body, name or email; skipped"
                )
                return "skipped"
            await self.lifecycle.apply(comment, CommentEvent.START_PROCESSING, user_id=user_id)

        try:
            translated = await self.translation.translate(comment.body or "")
            await self.comments.set_translated_body(comment.id, translated)
            comment.translated_body = translated

            await self.classification.classify(comment, user_id)
            return "processed"

        except ClassificationError as e:
            logger.warning(f"⚠️ Comment {comment.id} could not be classified: {e.message}")
            return "classification_failed"

        except InvalidTransition:
            raise

        except Exception as e:
            logger.error(f"❌ Processing comment {comment.id} failed: {e}")
            await self.lifecycle.reject_safely(comment, user_id=user_id)
            raise

    async def _advance_job(self, job_id: str, user_id: Optional[int]) -> None:
        tracker, finished = await self.tracker.advance(job_id, self.import_share)
        logger.debug(
            f"📝 Job {job_id}: {tracker.progress}/{tracker.total} "
            f"({tracker.progress_percentage}%)"
        )

        if finished and self.publisher is not None and user_id is not None:
            self.publisher.enqueue_metrics_recalculation(
                "user_import_completed", user_id=user_id
            )
