# commentflow/services/analysis_service.py
"""
Analysis Service
Entry point used by the API: start an analysis run and poll it
"""

import logging
from typing import Any, Dict, Optional

from commentflow.domain.exceptions import PayloadError
from commentflow.domain.interfaces import TaskPublisher
from commentflow.services.classification_service import ClassificationService
from commentflow.services.job_tracker_service import JobTrackerService

logger = logging.getLogger(__name__)


class AnalysisService:
    """Starts analysis jobs and reports their progress"""

    def __init__(
        self,
        tracker: JobTrackerService,
        publisher: TaskPublisher,
        classification: Optional[ClassificationService] = None,
    ):
        self.tracker = tracker
        self.publisher = publisher
        self.classification = classification

    async def start_analysis(self, username: str) -> str:
        """
        Create a job tracker and enqueue the import of ``username``

        Returns:
            job_id to poll

        Raises:
            PayloadError: Blank username
        """
        if not username or not username.strip():
            raise PayloadError("username must not be blank")

        username = username.strip()
        tracker = await self.tracker.create(metadata={"username": username})
        self.publisher.enqueue_import(tracker.job_id, username)

        logger.info(f"🚀 Analysis of '{username}' started as job {tracker.job_id}")
        return tracker.job_id

    async def get_progress(self, job_id: str) -> Dict[str, Any]:
        """
        Raises:
            JobNotFoundError: Unknown job
        """
        return await self.tracker.get_progress(job_id)

    async def classify_preview(self, text: Optional[str]) -> Dict[str, Any]:
        if self.classification is None:
            raise RuntimeError("AnalysisService was built without a classification service")
        return await self.classification.preview(text)
