# commentflow/infrastructure/repositories/user_repository.py
"""
User and Post Repositories
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import Post, User
from commentflow.infrastructure.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Data access for users"""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def find_by_username(self, username: str) -> Optional[User]:
        """Case-insensitive username lookup"""
        query = select(User).where(func.lower(User.username) == username.lower())
        result = await self.session.execute(query)
        return result.scalars().first()

    async def upsert_from_source(self, data: Dict[str, Any]) -> Tuple[User, bool]:
        """
        Upsert a user payload from the content source

        Args:
            data: Source user (id, username, name, email)

        Returns:
            (user, created)
        """
        return await self.upsert_by_external_id(
            int(data["id"]),
            username=data["username"],
            name=data.get("name"),
            email=data.get("email"),
        )

    async def all_ids(self) -> List[int]:
        result = await self.session.execute(select(User.id).order_by(User.id))
        return list(result.scalars().all())


class PostRepository(BaseRepository[Post]):
    """Data access for posts"""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Post)

    async def upsert_from_source(
        self, user_id: int, data: Dict[str, Any]
    ) -> Tuple[Post, bool]:
        return await self.upsert_by_external_id(
            int(data["id"]),
            user_id=user_id,
            title=data.get("title") or "",
            body=data.get("body"),
        )

    async def find_by_user(self, user_id: int) -> List[Post]:
        return await self.find_by(user_id=user_id)
