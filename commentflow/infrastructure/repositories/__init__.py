"""
Repository layer
"""

from commentflow.infrastructure.repositories.base import BaseRepository
from commentflow.infrastructure.repositories.comment_repository import CommentRepository
from commentflow.infrastructure.repositories.job_tracker_repository import (
    JobTrackerRepository,
)
from commentflow.infrastructure.repositories.keyword_repository import KeywordRepository
from commentflow.infrastructure.repositories.metrics_repository import (
    UserMetricsRepository,
)
from commentflow.infrastructure.repositories.user_repository import (
    PostRepository,
    UserRepository,
)

__all__ = [
    "BaseRepository",
    "CommentRepository",
    "JobTrackerRepository",
    "KeywordRepository",
    "PostRepository",
    "UserMetricsRepository",
    "UserRepository",
]
