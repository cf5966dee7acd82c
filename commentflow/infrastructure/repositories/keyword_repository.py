# commentflow/infrastructure/repositories/keyword_repository.py
"""
Keyword Repository
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import Keyword
from commentflow.infrastructure.repositories.base import BaseRepository


def normalize_word(word: str) -> str:
    return word.strip().lower()


class KeywordRepository(BaseRepository[Keyword]):
    """Data access for the classification dictionary"""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Keyword)

    async def active_words(self) -> List[str]:
        result = await self.session.execute(
            select(Keyword.word).where(Keyword.active.is_(True)).order_by(Keyword.word)
        )
        return list(result.scalars().all())

    async def find_word(self, word: str) -> Optional[Keyword]:
        return await self.find_one_by(word=normalize_word(word))

    async def add_word(self, word: str, description: Optional[str] = None) -> Keyword:
        """Create a keyword, or re-activate an existing one"""
        keyword = await self.find_word(word)
        if keyword is None:
            return await self.create(
                word=normalize_word(word), active=True, description=description
            )

        if not keyword.active:
            return await self.update(keyword.id, active=True)
        return keyword

    async def set_active(self, word: str, active: bool) -> Optional[Keyword]:
        keyword = await self.find_word(word)
        if keyword is None:
            return None
        return await self.update(keyword.id, active=active)
