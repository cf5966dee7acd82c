# commentflow/infrastructure/repositories/comment_repository.py
"""
Comment Repository
Comment persistence, conditional status transitions and metrics queries
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.models import Comment, CommentStatus, Post
from commentflow.infrastructure.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CommentRepository(BaseRepository[Comment]):
    """
    Repository for Comment entities

    Status changes go through ``transition_status``, a compare-and-set on
    the status column, so two workers racing on the same comment cannot
    both apply a transition.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Comment)

    async def upsert_from_source(
        self, post_id: int, data: Dict[str, Any]
    ) -> Tuple[Comment, bool]:
        """
        Upsert a comment payload; lifecycle fields of existing rows are kept

        Args:
            post_id: Owning post primary key
            data: Source comment (id, name, email, body)

        Returns:
            (comment, created)
        """
        return await self.upsert_by_external_id(
            int(data["id"]),
            post_id=post_id,
            name=data.get("name"),
            email=data.get("email"),
            body=data.get("body"),
        )

    async def get_with_owner(self, comment_id: int) -> Tuple[Optional[Comment], Optional[int]]:
        """
        Load a comment together with the id of the user owning its post

        Returns:
            (comment, user_id), or (None, None) when missing
        """
        query = (
            select(Comment, Post.user_id)
            .join(Post, Comment.post_id == Post.id)
            .where(Comment.id == comment_id)
        )
        row = (await self.session.execute(query)).first()
        if row is None:
            return None, None
        return row[0], row[1]

    async def transition_status(
        self, comment_id: int, from_status: CommentStatus, to_status: CommentStatus
    ) -> bool:
        """
        Move a comment from one status to another if it is still in ``from_status``

        Loaded instances are not synchronized; the caller updates its copy
        only when the transition was applied.

        Returns:
            True if applied, False if the comment changed concurrently
        """
        try:
            result = await self.session.execute(
                update(Comment)
                .where(Comment.id == comment_id, Comment.status == from_status)
                .values(status=to_status)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to transition comment {comment_id}: {e}")
            raise

        applied = result.rowcount == 1
        if not applied:
            logger.warning(
                f"⚠️ Comment {comment_id} is no longer '{from_status.value}', "
                f"transition to '{to_status.value}' skipped"
            )
        return applied

    async def set_translated_body(self, comment_id: int, text: str) -> None:
        await self._set(comment_id, translated_body=text)

    async def set_keyword_count(self, comment_id: int, keyword_count: int) -> None:
        await self._set(comment_id, keyword_count=keyword_count)

    async def _set(self, comment_id: int, **values) -> None:
        try:
            await self.session.execute(
                update(Comment).where(Comment.id == comment_id).values(**values)
            )
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to update comment {comment_id}: {e}")
            raise

    # ========================================================================
    # Queries
    # ========================================================================

    async def find_ids_by_status_for_user(
        self, user_id: int, status: CommentStatus
    ) -> List[int]:
        query = (
            select(Comment.id)
            .join(Post, Comment.post_id == Post.id)
            .where(Post.user_id == user_id, Comment.status == status)
            .order_by(Comment.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_ids_by_status(self, *statuses: CommentStatus) -> List[int]:
        query = select(Comment.id).where(Comment.status.in_(statuses)).order_by(Comment.id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def classification_rows(
        self, user_id: Optional[int] = None
    ) -> List[Tuple[int, CommentStatus, Optional[int]]]:
        """
        (user_id, status, keyword_count) for every comment, optionally one user's

        Returns:
            List of tuples used for metrics aggregation
        """
        query = select(Post.user_id, Comment.status, Comment.keyword_count).join(
            Post, Comment.post_id == Post.id
        )
        if user_id is not None:
            query = query.where(Post.user_id == user_id)

        result = await self.session.execute(query)
        return [tuple(row) for row in result.all()]
