# commentflow/services/keyword_service.py
"""
Keyword Service
Maintains the classification dictionary and reacts to its changes
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import Keyword
from commentflow.domain.interfaces import TaskPublisher
from commentflow.infrastructure.cache import InvalidationTrigger, TypedCache
from commentflow.infrastructure.repositories import KeywordRepository
from commentflow.services.classification_service import DEFAULT_KEYWORDS

logger = logging.getLogger(__name__)


class KeywordService:
    """Keyword CRUD; every change invalidates and triggers reclassification"""

    def __init__(
        self,
        session: AsyncSession,
        cache: TypedCache,
        publisher: Optional[TaskPublisher] = None,
    ):
        self.repository = KeywordRepository(session)
        self.cache = cache
        self.publisher = publisher

    async def list_active(self) -> List[str]:
        return await self.repository.active_words()

    async def add_keyword(self, word: str, description: Optional[str] = None) -> Keyword:
        """
        Add (or re-activate) a keyword

        Raises:
            ValueError: Blank word
        """
        if not word or not word.strip():
            raise ValueError("Keyword must not be blank")

        keyword = await self.repository.add_word(word, description=description)
        logger.info(f"📝 Keyword '{keyword.word}' active")
        self.on_keywords_changed()
        return keyword

    async def deactivate_keyword(self, word: str) -> bool:
        """Deactivate a keyword; False if it does not exist"""
        keyword = await self.repository.set_active(word, False)
        if keyword is None:
            return False

        logger.info(f"🗑️ Keyword '{keyword.word}' deactivated")
        self.on_keywords_changed()
        return True

    async def seed_defaults(self, words: Iterable[str] = DEFAULT_KEYWORDS) -> int:
        """
        Insert missing default keywords without touching existing ones

        Returns:
            Number of keywords created
        """
        created = 0
        for word in words:
            if await self.repository.find_word(word) is None:
                await self.repository.add_word(word)
                created += 1

        if created:
            logger.info(f"✅ Seeded {created} keywords")
            self.on_keywords_changed()
        return created

    def on_keywords_changed(self) -> int:
        """
        Drop keyword-dependent caches and schedule reclassification

        The reclassification task schedules the metrics recalculation for
        the keyword change once it has finished.

        Returns:
            Number of cache entries removed
        """
        removed = self.cache.invalidate(InvalidationTrigger.KEYWORD_CHANGE)

        if self.publisher is not None:
            self.publisher.enqueue_reclassification()

        logger.info(f"🔄 Keywords changed, {removed} cache entries invalidated")
        return removed
