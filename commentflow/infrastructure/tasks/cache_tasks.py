# commentflow/infrastructure/tasks/cache_tasks.py
"""
Cache Background Tasks
Cache warming and periodic statistics
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from commentflow.app.database import db_manager
from commentflow.app.dependencies import ServiceContainer, get_cache_monitor
from commentflow.domain.exceptions import PayloadError
from commentflow.infrastructure.tasks.celery_app import (
    celery_app,
    discarded,
    parse_payload,
    run_async,
)
from commentflow.services.cache_warming_service import WarmingType

logger = logging.getLogger(__name__)


class WarmCachePayload(BaseModel):
    warming_type: WarmingType = WarmingType.FULL
    user_ids: List[int] = Field(default_factory=list)


async def _warm(payload: WarmCachePayload) -> Dict[str, Any]:
    async with db_manager.session() as session:
        services = ServiceContainer(session)
        try:
            return await services.cache_warming.warm(payload.warming_type, payload.user_ids)
        finally:
            await services.aclose()


@celery_app.task(bind=True, name="tasks.cache.warm", max_retries=0)
def warm_cache(
    self, warming_type: str = "full", user_ids: Optional[List[int]] = None
) -> Dict[str, Any]:
    """
    Warm the typed cache

    Args:
        warming_type: full, keywords, metrics, user_specific or translations
        user_ids: Users to warm for ``user_specific``
    """
    try:
        payload = parse_payload(
            WarmCachePayload, warming_type=warming_type, user_ids=user_ids or []
        )
    except PayloadError as e:
        return discarded(self.name, e)

    return run_async(_warm(payload))


@celery_app.task(name="tasks.cache.log_stats")
def log_cache_stats() -> Dict[str, Any]:
    """Periodic cache health line"""
    return get_cache_monitor().log_periodic_stats()
