"""
Database models
"""

from commentflow.app.database import Base
from commentflow.app.models.comment import Comment, CommentStatus
from commentflow.app.models.job_tracker import JobStatus, JobTracker
from commentflow.app.models.keyword import Keyword
from commentflow.app.models.metrics import UserMetrics
from commentflow.app.models.user import Post, User

__all__ = [
    "Base",
    "Comment",
    "CommentStatus",
    "JobStatus",
    "JobTracker",
    "Keyword",
    "Post",
    "User",
    "UserMetrics",
]
