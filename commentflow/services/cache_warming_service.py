# commentflow/services/cache_warming_service.py
"""
Cache Warming Service
Pre-populates the typed cache after deploys or invalidations
"""

import enum
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from commentflow.domain.exceptions import ServiceError
from commentflow.services.classification_service import ClassificationService
from commentflow.services.metrics_service import MetricsService
from commentflow.services.translation_service import TranslationService

logger = logging.getLogger(__name__)

DEFAULT_COMMON_PHRASES = [
    "Great post!",
    "Thank you for sharing",
    "Very interesting",
    "I agree",
    "Good job",
    "Excellent work",
    "Nice article",
    "Well written",
]


class WarmingType(str, enum.Enum):
    FULL = "full"
    KEYWORDS = "keywords"
    METRICS = "metrics"
    USER_SPECIFIC = "user_specific"
    TRANSLATIONS = "translations"


class CacheWarmingService:
    """Runs one warming strategy per call"""

    def __init__(
        self,
        classification: ClassificationService,
        metrics: MetricsService,
        translation: TranslationService,
        common_phrases: Optional[Sequence[str]] = None,
    ):
        self.classification = classification
        self.metrics = metrics
        self.translation = translation
        self.common_phrases = list(common_phrases or DEFAULT_COMMON_PHRASES)

        self._strategies: Dict[WarmingType, Callable[[List[int]], Awaitable[Dict[str, int]]]] = {
            WarmingType.FULL: self._warm_full,
            WarmingType.KEYWORDS: self._warm_keywords,
            WarmingType.METRICS: self._warm_metrics,
            WarmingType.USER_SPECIFIC: self._warm_users,
            WarmingType.TRANSLATIONS: self._warm_translations,
        }

    async def warm(
        self, warming_type: WarmingType, user_ids: Optional[List[int]] = None
    ) -> Dict[str, Any]:
        """
        Warm the cache

        Args:
            warming_type: Strategy to run
            user_ids: Users for the ``user_specific`` strategy

        Returns:
            {warming_type, warmed, duration_seconds}

        Raises:
            ValueError: Unknown warming type
        """
        warming_type = WarmingType(warming_type)
        started = time.monotonic()
        logger.info(f"🔥 Cache warming started ({warming_type.value})")

        warmed = await self._strategies[warming_type](list(user_ids or []))

        duration = round(time.monotonic() - started, 2)
        logger.info(f"✅ Cache warming ({warming_type.value}) done in {duration}s: {warmed}")
        return {"warming_type": warming_type.value, "warmed": warmed, "duration_seconds": duration}

    async def _warm_full(self, user_ids: List[int]) -> Dict[str, int]:
        warmed: Dict[str, int] = {}
        warmed.update(await self._warm_keywords(user_ids))
        warmed.update(await self._warm_metrics(user_ids))
        warmed.update(await self._warm_translations(user_ids))
        return warmed

    async def _warm_keywords(self, user_ids: List[int]) -> Dict[str, int]:
        keywords = await self.classification.active_keywords()
        return {"keywords": len(keywords)}

    async def _warm_metrics(self, user_ids: List[int]) -> Dict[str, int]:
        await self.metrics.calculate_group_metrics()
        users = await self.metrics.user_ids()
        warmed = await self._warm_users(users)
        return {"group_metrics": 1, **warmed}

    async def _warm_users(self, user_ids: List[int]) -> Dict[str, int]:
        warmed = 0
        for user_id in user_ids:
            try:
                await self.metrics.calculate_user_metrics(user_id)
                warmed += 1
            except ServiceError as e:
                logger.warning(f"⚠️ Could not warm metrics of user {user_id}: {e.message}")
        return {"user_metrics": warmed}

    async def _warm_translations(self, user_ids: List[int]) -> Dict[str, int]:
        translations = await self.translation.translate_batch(self.common_phrases)
        return {"translations": len(translations)}
