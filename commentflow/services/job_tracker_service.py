# commentflow/services/job_tracker_service.py
"""
Job Tracker Service
Create, advance and read the progress record of an analysis run
"""

import logging
import math
import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import JobStatus, JobTracker
from commentflow.domain.exceptions import JobNotFoundError
from commentflow.infrastructure.cache import CacheType, TypedCache
from commentflow.infrastructure.repositories import JobTrackerRepository

logger = logging.getLogger(__name__)

IMPORT_SHARE = 50


def item_progress(index: int, count: int, total: int, import_share: int = IMPORT_SHARE) -> int:
    """
    Progress after ``index`` of ``count`` fan-out items have finished

    ``floor(index / count * remaining) + import_share`` capped at ``total``,
    where ``remaining = total - import_share``.
    """
    if count <= 0:
        return total
    remaining = max(total - import_share, 0)
    return min(math.floor(index / count * remaining) + import_share, total)


class JobTrackerService:
    """Business logic for job progress tracking"""

    def __init__(self, session: AsyncSession, cache: Optional[TypedCache] = None):
        self.repository = JobTrackerRepository(session)
        self.cache = cache

    async def create(self, metadata: Optional[Dict[str, Any]] = None) -> JobTracker:
        """
        Create a pending tracker

        Args:
            metadata: Opaque details (e.g. source username)

        Returns:
            New JobTracker
        """
        tracker = await self.repository.create(
            job_id=uuid.uuid4().hex,
            progress=0,
            total=0,
            completed_steps=0,
            job_metadata=metadata or {},
        )
        logger.info(f"📝 Created job tracker: {tracker.job_id}")
        return tracker

    async def get(self, job_id: str) -> JobTracker:
        tracker = await self.repository.get_by_job_id(job_id)
        if tracker is None:
            raise JobNotFoundError(f"Job {job_id} not found", details={"job_id": job_id})
        return tracker

    async def update_progress(
        self, job_id: str, current: int, error: Optional[str] = None
    ) -> JobTracker:
        tracker = await self.get(job_id)
        tracker.update_progress(current, error=error)
        return await self.repository.save(tracker)

    async def start(self, job_id: str, provisional_total: int = 100) -> JobTracker:
        """Reset a tracker for a (re)started import on a provisional scale"""
        tracker = await self.get(job_id)
        tracker.total = provisional_total
        tracker.completed_steps = 0
        tracker.update_progress(0)
        return await self.repository.save(tracker)

    async def set_total(
        self, job_id: str, total: int, metadata: Optional[Dict[str, Any]] = None
    ) -> JobTracker:
        """Set the progress scale and merge metadata"""
        tracker = await self.get(job_id)
        tracker.total = total
        if metadata:
            tracker.job_metadata = {**(tracker.job_metadata or {}), **metadata}
        return await self.repository.save(tracker)

    async def mark_failed(self, job_id: str, message: str) -> JobTracker:
        tracker = await self.update_progress(job_id, 0, error=message)
        logger.error(f"❌ Job {job_id} failed: {message}")
        return tracker

    async def advance(
        self, job_id: str, import_share: int = IMPORT_SHARE
    ) -> Tuple[JobTracker, bool]:
        """
        Record one finished fan-out item

        The step index comes from an atomic counter and progress only moves
        forward, so concurrent workers finishing out of order never move the
        tracker backwards.

        Returns:
            (tracker, finished) where finished is True for the final item
        """
        step = await self.repository.increment_completed_steps(job_id)
        tracker = await self.get(job_id)

        if tracker.status == JobStatus.FAILED:
            return tracker, False

        count = max((tracker.total or 0) - import_share, 0)
        progress = item_progress(step, count, tracker.total or 0, import_share)

        status = (
            JobStatus.COMPLETED if progress >= (tracker.total or 0) else JobStatus.PROCESSING
        )
        if await self.repository.raise_progress(job_id, progress, status):
            tracker = await self.get(job_id)

        finished = count > 0 and step == count
        if finished:
            logger.info(f"🎉 Job {job_id} finished all {count} items")
        return tracker, finished

    async def get_progress(self, job_id: str) -> Dict[str, Any]:
        """
        Polling payload

        Returns:
            {job_id, status, progress, total, percentage, metadata, error?}
        """
        tracker = await self.get(job_id)
        snapshot = tracker.to_dict()
        if self.cache is not None:
            self.cache.write(job_id, snapshot, CacheType.JOB_PROGRESS)
        return snapshot

    def cached_progress(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Last polled snapshot, without touching the database"""
        if self.cache is None:
            return None
        return self.cache.read(job_id, CacheType.JOB_PROGRESS)
