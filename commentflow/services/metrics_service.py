# commentflow/services/metrics_service.py
"""
Metrics Service
Per-user and group statistics derived from classified comments
"""

import enum
import logging
import statistics
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import CommentStatus
from commentflow.domain.exceptions import UserNotFoundError
from commentflow.infrastructure.cache import (
    CacheType,
    InvalidationTrigger,
    TypedCache,
    user_cache_key,
)
from commentflow.infrastructure.repositories import (
    CommentRepository,
    UserMetricsRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

GROUP_METRICS_KEY = "all"


class RecalculationTrigger(str, enum.Enum):
    """Why metrics are being recalculated"""

    KEYWORD_CHANGE = "keyword_change"
    USER_IMPORT_COMPLETED = "user_import_completed"
    MANUAL = "manual"
    USER_SPECIFIC = "user_specific"


# ============================================================================
# Statistics helpers
# ============================================================================


def describe(values: Sequence[float]) -> Dict[str, float]:
    """
    Mean, median and population standard deviation, rounded to 2 places

    Empty input gives zeros; the deviation is 0 with fewer than two values.
    """
    if not values:
        return {"average": 0.0, "median": 0.0, "std_dev": 0.0}

    return {
        "average": round(statistics.fmean(values), 2),
        "median": round(float(statistics.median(values)), 2),
        "std_dev": round(statistics.pstdev(values), 2) if len(values) > 1 else 0.0,
    }


def rate(part: int, total: int) -> float:
    """Percentage rounded to 2 places, 0 when total is 0"""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 2)


def _comment_summary(rows: List[tuple]) -> Dict[str, Any]:
    statuses = Counter(status for _, status, _ in rows)
    keyword_counts = [count or 0 for _, _, count in rows]
    approved_counts = [
        count or 0 for _, status, count in rows if status == CommentStatus.APPROVED
    ]
    total = len(rows)
    approved = statuses[CommentStatus.APPROVED]
    rejected = statuses[CommentStatus.REJECTED]

    return {
        "total_comments": total,
        "approved_comments": approved,
        "rejected_comments": rejected,
        "processing_comments": statuses[CommentStatus.PROCESSING],
        "new_comments": statuses[CommentStatus.NEW],
        "approval_rate": rate(approved, total),
        "rejection_rate": rate(rejected, total),
        "keyword_count": describe(keyword_counts),
        "approved_keyword_count": describe(approved_counts),
    }


# ============================================================================
# Service
# ============================================================================


class MetricsService:
    """
    Calculates metrics from stored comments

    Results are served read-through from the ``user_metrics`` and
    ``group_metrics`` cache types; user metrics are also persisted.
    """

    def __init__(self, session: AsyncSession, cache: TypedCache):
        self.cache = cache
        self.users = UserRepository(session)
        self.comments = CommentRepository(session)
        self.user_metrics = UserMetricsRepository(session)

        self._handlers: Dict[
            RecalculationTrigger, Callable[[Optional[int]], Awaitable[Dict[str, Any]]]
        ] = {
            RecalculationTrigger.KEYWORD_CHANGE: self._recalculate_everything,
            RecalculationTrigger.MANUAL: self._recalculate_everything,
            RecalculationTrigger.USER_IMPORT_COMPLETED: self._recalculate_user,
            RecalculationTrigger.USER_SPECIFIC: self._recalculate_user,
        }

    # ========================================================================
    # Calculation
    # ========================================================================

    async def user_ids(self) -> List[int]:
        """Ids of every stored user"""
        return await self.users.all_ids()

    async def calculate_user_metrics(self, user_id: int) -> Dict[str, Any]:
        """
        Metrics of one user, cached

        Raises:
            UserNotFoundError: Unknown user
        """
        return await self.cache.fetch_async(
            user_cache_key(user_id),
            CacheType.USER_METRICS,
            lambda: self._build_user_metrics(user_id),
        )

    async def _build_user_metrics(self, user_id: int) -> Dict[str, Any]:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found", details={"user_id": user_id})

        rows = await self.comments.classification_rows(user_id)
        metrics = {
            "user_id": user.id,
            "user_name": user.name,
            **_comment_summary(rows),
            "calculated_at": datetime.now(timezone.utc).isoformat(),
        }

        await self.user_metrics.store(user.id, metrics)
        logger.info(
            f"📊 Metrics for user {user.id}: {metrics['total_comments']} comments, "
            f"{metrics['approval_rate']}% approved"
        )
        return metrics

    async def calculate_group_metrics(self) -> Dict[str, Any]:
        """Metrics across all users, cached"""
        return await self.cache.fetch_async(
            GROUP_METRICS_KEY, CacheType.GROUP_METRICS, self._build_group_metrics
        )

    async def _build_group_metrics(self) -> Dict[str, Any]:
        rows = await self.comments.classification_rows()
        user_ids = await self.user_ids()

        per_user: Dict[int, int] = defaultdict(int)
        for owner_id, _, _ in rows:
            per_user[owner_id] += 1

        metrics = {
            "total_users": len(user_ids),
            "users_with_comments": len(per_user),
            **_comment_summary(rows),
            "comments_per_user": describe(list(per_user.values())),
            "calculated_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(
            f"📊 Group metrics: {metrics['total_users']} users, "
            f"{metrics['total_comments']} comments"
        )
        return metrics

    # ========================================================================
    # Recalculation
    # ========================================================================

    async def recalculate(
        self, trigger: RecalculationTrigger, user_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Drop stale metrics and compute them again

        Args:
            trigger: Reason for the recalculation
            user_id: Required by user-scoped triggers

        Returns:
            {users, group}

        Raises:
            ValueError: Unknown trigger, or user-scoped trigger without user_id
        """
        trigger = RecalculationTrigger(trigger)
        logger.info(f"🔄 Recalculating metrics ({trigger.value}, user={user_id})")
        return await self._handlers[trigger](user_id)

    async def _recalculate_user(self, user_id: Optional[int]) -> Dict[str, Any]:
        if user_id is None:
            raise ValueError("user_id is required for user-scoped recalculation")

        self.cache.invalidate(InvalidationTrigger.USER_DATA_CHANGE, user_id=user_id)
        user_metrics = await self.calculate_user_metrics(user_id)
        group_metrics = await self.calculate_group_metrics()
        return {"users": [user_metrics], "group": group_metrics}

    async def _recalculate_everything(self, user_id: Optional[int] = None) -> Dict[str, Any]:
        self.cache.invalidate(InvalidationTrigger.METRICS_RECALCULATION)

        users = []
        for uid in await self.user_ids():
            users.append(await self.calculate_user_metrics(uid))
        group_metrics = await self.calculate_group_metrics()

        logger.info(f"✅ Recalculated metrics for {len(users)} users")
        return {"users": users, "group": group_metrics}
