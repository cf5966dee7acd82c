# commentflow/services/import_service.py
"""
Import Service
Fetches a user's posts and comments from the content source and upserts them
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.config import ContentSourceSettings, get_config
from commentflow.app.models import CommentStatus
from commentflow.domain.exceptions import APIError, UserNotFoundError
from commentflow.infrastructure.cache import InvalidationTrigger, TypedCache
from commentflow.infrastructure.clients import ContentSourceClient
from commentflow.infrastructure.repositories import (
    CommentRepository,
    PostRepository,
    UserRepository,
)
from commentflow.infrastructure.resilience import CircuitBreaker, is_transient_failure

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of importing one user"""

    user_id: int
    username: str
    posts_count: int = 0
    comments_count: int = 0
    new_comment_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "posts_count": self.posts_count,
            "comments_count": self.comments_count,
            "comments_to_process": len(self.new_comment_ids),
        }


class ImportService:
    """
    Idempotent import of one user from the content source

    Rows are upserted by their external id, so re-running an import (or a
    redelivered task) never creates duplicates and keeps the lifecycle status
    of comments already stored.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: ContentSourceClient,
        breaker: CircuitBreaker,
        cache: Optional[TypedCache] = None,
        settings: Optional[ContentSourceSettings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.breaker = breaker
        self.cache = cache
        self.settings = settings or get_config().content_source
        self.sleep = sleep

        self.users = UserRepository(session)
        self.posts = PostRepository(session)
        self.comments = CommentRepository(session)

    # ========================================================================
    # Fetching
    # ========================================================================

    async def _fetch(self, operation: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """
        Call the content source through the breaker with inline retry

        Only transient failures (timeouts, connection errors, 5xx) are
        retried, doubling ``retry_delay`` after each attempt. An open
        circuit is not retried here.

        Raises:
            APIError: Retries exhausted, or a non-transient HTTP error
            CircuitOpenError: Content source circuit is open
        """
        max_retries = self.settings.max_retries
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_retries + 1):
            try:
                return await self.breaker.call(func, *args)
            except Exception as e:
                if not is_transient_failure(e):
                    raise
                last_error = e
                if attempt < max_retries:
                    delay = self.settings.retry_delay * 2 ** (attempt - 1)
                    logger.warning(
                        f"⚠️ {operation} failed (attempt {attempt}/{max_retries}), "
                        f"retrying in {delay}s: {type(e).__name__}"
                    )
                    await self.sleep(delay)

        logger.error(f"❌ {operation} failed after {max_retries} attempts: {last_error}")
        raise APIError(
            f"{operation} failed after {max_retries} attempts: {last_error}",
            details={"operation": operation, "attempts": max_retries},
        ) from last_error

    # ========================================================================
    # Import
    # ========================================================================

    async def import_user(self, username: str) -> ImportResult:
        """
        Import a user with all posts and comments

        Args:
            username: Source username (matched case-insensitively)

        Returns:
            ImportResult with counts and the ids of comments still ``new``

        Raises:
            UserNotFoundError: No source user with that username
            APIError: Content source failure after retries
            CircuitOpenError: Content source circuit is open
        """
        logger.info(f"🔄 Importing user '{username}'")

        source_users = await self._fetch("GET users", self.client.get_users)
        match = next(
            (u for u in source_users if u.username.lower() == username.lower()), None
        )
        if match is None:
            raise UserNotFoundError(
                f"User '{username}' not found in content source",
                details={"username": username},
            )

        user, _ = await self.users.upsert_from_source(match.model_dump())
        result = ImportResult(user_id=user.id, username=user.username)

        source_posts = await self._fetch(
            f"GET users/{match.id}/posts", self.client.get_user_posts, match.id
        )
        for source_post in source_posts:
            post, _ = await self.posts.upsert_from_source(
                result.user_id, source_post.model_dump()
            )
            post_id = post.id
            result.posts_count += 1

            source_comments = await self._fetch(
                f"GET posts/{source_post.id}/comments",
                self.client.get_post_comments,
                source_post.id,
            )
            for source_comment in source_comments:
                comment, _ = await self.comments.upsert_from_source(
                    post_id, source_comment.model_dump()
                )
                result.comments_count += 1
                if comment.status == CommentStatus.NEW:
                    result.new_comment_ids.append(comment.id)

        if self.cache is not None:
            self.cache.invalidate(InvalidationTrigger.USER_DATA_CHANGE, user_id=result.user_id)

        logger.info(
            f"✅ Imported '{result.username}': {result.posts_count} posts, "
            f"{result.comments_count} comments ({len(result.new_comment_ids)} to process)"
        )
        return result
