# tests/unit/test_keyword_service.py
"""
Unit Tests for KeywordService
"""

import pytest

from commentflow.infrastructure.cache import CacheType
from commentflow.services.classification_service import ACTIVE_KEYWORDS_KEY
from commentflow.services.keyword_service import KeywordService


@pytest.fixture
def service(db_session, cache, publisher):
    return KeywordService(db_session, cache, publisher=publisher)


class TestKeywordService:
    @pytest.mark.asyncio
    async def test_add_normalizes_word(self, service):
        keyword = await service.add_keyword("  Incrível ", description="praise")

        assert keyword.word == "incrível"
        assert await service.list_active() == ["incrível"]

    @pytest.mark.asyncio
    async def test_blank_word_is_rejected(self, service, publisher):
        with pytest.raises(ValueError):
            await service.add_keyword("   ")

        assert publisher.published == {}

    @pytest.mark.asyncio
    async def test_change_invalidates_and_reclassifies(self, service, cache, publisher):
        cache.write(ACTIVE_KEYWORDS_KEY, ["bom"], CacheType.KEYWORDS)
        cache.write("all", {"total_comments": 1}, CacheType.GROUP_METRICS)

        await service.add_keyword("show")

        assert cache.read(ACTIVE_KEYWORDS_KEY, CacheType.KEYWORDS) is None
        assert cache.read("all", CacheType.GROUP_METRICS) is None
        assert publisher.published["reclassification"] == [()]
        assert "metrics_recalculation" not in publisher.published

    @pytest.mark.asyncio
    async def test_deactivate(self, service, publisher):
        await service.add_keyword("show")

        assert await service.deactivate_keyword("SHOW") is True
        assert await service.list_active() == []
        assert len(publisher.published["reclassification"]) == 2

    @pytest.mark.asyncio
    async def test_deactivate_unknown(self, service, publisher):
        assert await service.deactivate_keyword("nope") is False
        assert publisher.published == {}

    @pytest.mark.asyncio
    async def test_readding_reactivates(self, service):
        first = await service.add_keyword("show")
        await service.deactivate_keyword("show")

        again = await service.add_keyword("show")

        assert again.id == first.id
        assert again.active is True

    @pytest.mark.asyncio
    async def test_seed_defaults_is_idempotent(self, service, publisher):
        assert await service.seed_defaults(["bom", "ótimo"]) == 2
        assert await service.seed_defaults(["bom", "ótimo", "show"]) == 1
        assert await service.list_active() == ["bom", "show", "ótimo"]
        assert len(publisher.published["reclassification"]) == 2
