# commentflow/infrastructure/repositories/job_tracker_repository.py
"""
Job Tracker Repository
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import JobStatus, JobTracker
from commentflow.infrastructure.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class JobTrackerRepository(BaseRepository[JobTracker]):
    """Data access for job trackers"""

    def __init__(self, session: AsyncSession):
        super().__init__(session, JobTracker)

    async def get_by_job_id(self, job_id: str) -> Optional[JobTracker]:
        """Fresh read; other workers update trackers concurrently"""
        result = await self.session.execute(
            select(JobTracker)
            .where(JobTracker.job_id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save(self, tracker: JobTracker) -> JobTracker:
        """Commit in-memory changes made to a tracker"""
        try:
            self.session.add(tracker)
            await self.session.commit()
            await self.session.refresh(tracker)
            return tracker
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to save job tracker {tracker.job_id}: {e}")
            raise

    async def increment_completed_steps(self, job_id: str) -> int:
        """
        Atomically count one finished fan-out task

        The increment is a single UPDATE and the new value is read inside the
        same transaction, so concurrent workers each observe a distinct count.

        Returns:
            The step count including this one
        """
        try:
            await self.session.execute(
                update(JobTracker)
                .where(JobTracker.job_id == job_id)
                .values(completed_steps=JobTracker.completed_steps + 1)
            )
            result = await self.session.execute(
                select(JobTracker.completed_steps).where(JobTracker.job_id == job_id)
            )
            steps = result.scalar_one()
            await self.session.commit()
            return int(steps)
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to advance job {job_id}: {e}")
            raise

    async def raise_progress(self, job_id: str, progress: int, status: JobStatus) -> bool:
        """
        Move progress forward only; never overrides a failed run

        Returns:
            True if the row was updated
        """
        try:
            result = await self.session.execute(
                update(JobTracker)
                .where(
                    JobTracker.job_id == job_id,
                    JobTracker.progress < progress,
                    JobTracker.status != JobStatus.FAILED,
                )
                .values(progress=progress, status=status)
            )
            await self.session.commit()
            return result.rowcount == 1
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to raise progress of job {job_id}: {e}")
            raise
