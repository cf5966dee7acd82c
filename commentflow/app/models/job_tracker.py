# commentflow/app/models/job_tracker.py
"""
Job Tracker Model
Durable progress record polled by clients while a pipeline run executes
"""

import enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy import Enum as SQLEnum

from commentflow.app.database import Base
from commentflow.app.models.user import utcnow


class JobStatus(str, enum.Enum):
    """Job tracker status"""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobTracker(Base):
    """
    Progress of one analysis run

    ``status`` is derived from ``progress`` vs ``total``; the only manual
    override is marking the run failed.
    """

    __tablename__ = "job_trackers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(
        String(64), unique=True, nullable=False, index=True, comment="Public job id"
    )
    status = Column(
        SQLEnum(JobStatus),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
        comment="Derived run status",
    )
    progress = Column(Integer, nullable=False, default=0, comment="Progress units done")
    total = Column(Integer, nullable=False, default=0, comment="Progress units total")
    completed_steps = Column(
        Integer, nullable=False, default=0, comment="Fan-out tasks finished"
    )
    error_message = Column(Text, comment="Failure reason")
    job_metadata = Column("metadata", JSON, default=dict, comment="Opaque run details")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<JobTracker(job_id={self.job_id}, status={self.status}, "
            f"{self.progress}/{self.total})>"
        )

    def update_progress(self, current: int, error: Optional[str] = None) -> None:
        """
        Record progress, or fail the run when ``error`` is given

        Args:
            current: Progress units done
            error: Failure message; marks the run failed and stops
        """
        if error:
            self.status = JobStatus.FAILED
            self.error_message = error
            return

        self.progress = current
        self.error_message = None
        self.status = (
            JobStatus.COMPLETED if current >= (self.total or 0) else JobStatus.PROCESSING
        )

    @property
    def progress_percentage(self) -> float:
        """Percentage in [0, 100]; 0 when total is 0"""
        if not self.total:
            return 0.0
        percentage = round((self.progress or 0) / self.total * 100, 2)
        return min(max(percentage, 0.0), 100.0)

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        """Progress payload for pollers"""
        data = {
            "job_id": self.job_id,
            "status": self.status.value if self.status else None,
            "progress": self.progress,
            "total": self.total,
            "percentage": self.progress_percentage,
            "metadata": self.job_metadata or {},
        }
        if self.error_message:
            data["error"] = self.error_message
        return data
