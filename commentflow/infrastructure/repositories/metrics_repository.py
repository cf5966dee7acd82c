# commentflow/infrastructure/repositories/metrics_repository.py
"""
User Metrics Repository
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import UserMetrics
from commentflow.infrastructure.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UserMetricsRepository(BaseRepository[UserMetrics]):
    """Persistence of the latest per-user metrics"""

    def __init__(self, session: AsyncSession):
        super().__init__(session, UserMetrics)

    async def get_for_user(self, user_id: int) -> Optional[UserMetrics]:
        return await self.find_one_by(user_id=user_id)

    async def store(self, user_id: int, metrics: Dict[str, Any]) -> UserMetrics:
        """Insert or replace the metrics row of a user"""
        values = {
            "total_comments": metrics["total_comments"],
            "approved_comments": metrics["approved_comments"],
            "rejected_comments": metrics["rejected_comments"],
            "approval_rate": metrics["approval_rate"],
            "data": metrics,
            "calculated_at": datetime.now(timezone.utc),
        }

        row = await self.get_for_user(user_id)
        if row is None:
            return await self.create(user_id=user_id, **values)
        return await self.update(row.id, **values)
