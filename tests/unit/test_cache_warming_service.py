# tests/unit/test_cache_warming_service.py
"""
Unit Tests for CacheWarmingService
"""

from unittest.mock import AsyncMock

import pytest

from commentflow.app.config import TranslationSettings
from commentflow.infrastructure.cache import CacheType, user_cache_key
from commentflow.infrastructure.resilience import CircuitBreaker
from commentflow.services.cache_warming_service import CacheWarmingService, WarmingType
from commentflow.services.classification_service import (
    ACTIVE_KEYWORDS_KEY,
    ClassificationService,
)
from commentflow.services.comment_lifecycle_service import CommentLifecycleService
from commentflow.services.metrics_service import GROUP_METRICS_KEY, MetricsService
from commentflow.services.translation_service import TranslationService, text_hash


@pytest.fixture
def translation_client():
    client = AsyncMock()
    client.translate.side_effect = lambda text, source, target: f"[pt] {text}"
    return client


@pytest.fixture
def service(db_session, cache, translation_client, classification_settings):
    settings = TranslationSettings(
        source_language="en", target_language="pt", detect_language=False
    )
    translation = TranslationService(
        translation_client, cache, CircuitBreaker("translation", cache), settings=settings
    )
    classification = ClassificationService(
        db_session,
        cache,
        CommentLifecycleService(db_session),
        settings=classification_settings,
    )
    return CacheWarmingService(
        classification,
        MetricsService(db_session, cache),
        translation,
        common_phrases=["Great post!", "Good job"],
    )


class TestCacheWarmingService:
    @pytest.mark.asyncio
    async def test_keywords(self, service, cache, keywords):
        result = await service.warm(WarmingType.KEYWORDS)

        assert result["warming_type"] == "keywords"
        assert result["warmed"] == {"keywords": 4}
        assert cache.read(ACTIVE_KEYWORDS_KEY, CacheType.KEYWORDS) is not None

    @pytest.mark.asyncio
    async def test_metrics(self, service, cache, sample_user):
        result = await service.warm(WarmingType.METRICS)

        assert result["warmed"] == {"group_metrics": 1, "user_metrics": 1}
        assert cache.read(GROUP_METRICS_KEY, CacheType.GROUP_METRICS) is not None
        assert cache.read(user_cache_key(sample_user.id), CacheType.USER_METRICS) is not None

    @pytest.mark.asyncio
    async def test_user_specific_skips_unknown_users(self, service, sample_user):
        result = await service.warm(WarmingType.USER_SPECIFIC, user_ids=[sample_user.id, 999])

        assert result["warmed"] == {"user_metrics": 1}

    @pytest.mark.asyncio
    async def test_translations(self, service, cache):
        result = await service.warm("translations")

        assert result["warmed"] == {"translations": 2}
        key = text_hash("Good job", "en", "pt")
        assert cache.read(key, CacheType.TRANSLATION) == "[pt] Good job"

    @pytest.mark.asyncio
    async def test_full(self, service, sample_user, keywords):
        result = await service.warm(WarmingType.FULL)

        assert result["warmed"] == {
            "keywords": 4,
            "group_metrics": 1,
            "user_metrics": 1,
            "translations": 2,
        }
        assert result["duration_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_unknown_type(self, service):
        with pytest.raises(ValueError):
            await service.warm("everything")
