# commentflow/infrastructure/clients/content_source.py
"""
Content Source API Client
Fetches users, posts and comments from the external content source.

Features:
- Type-safe response parsing with Pydantic
- HTTP errors mapped onto the pipeline's exception hierarchy
- Async context manager owning the connection pool
"""

import logging
from typing import Any, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from commentflow.app.config import get_config
from commentflow.domain.exceptions import APIError, RateLimitError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ============================================================================
# Response Models
# ============================================================================


class SourceUser(BaseModel):
    """User returned by GET /users"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None


class SourcePost(BaseModel):
    """Post returned by GET /users/{id}/posts"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    user_id: int = Field(alias="userId")
    title: str = ""
    body: Optional[str] = None


class SourceComment(BaseModel):
    """Comment returned by GET /posts/{id}/comments"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    post_id: int = Field(alias="postId")
    name: Optional[str] = None
    email: Optional[str] = None
    body: Optional[str] = None


# ============================================================================
# Client
# ============================================================================


class ContentSourceClient:
    """
    Async client for the content source

    Makes exactly one HTTP attempt per call; retry and circuit breaking are
    applied by the caller.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_config().content_source
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.request_timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def _get_list(self, path: str, model: Type[M]) -> List[M]:
        """
        GET a JSON array and parse it into models

        Raises:
            RateLimitError: HTTP 429
            APIError: Other non-2xx status or malformed body
            httpx.TransportError: Network failure / timeout
        """
        response = await self.client.get(path)

        if response.status_code == 429:
            raise RateLimitError(
                f"Content source rate limited {path}", status_code=429
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Content source error {response.status_code} on {path}")
            raise APIError(
                f"Content source returned {response.status_code} for {path}",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            ) from e

        try:
            return TypeAdapter(List[model]).validate_python(response.json())
        except (ValueError, ValidationError) as e:
            raise APIError(f"Malformed response from {path}: {e}") from e

    async def get_users(self) -> List[SourceUser]:
        return await self._get_list("/users", SourceUser)

    async def get_user_posts(self, user_id: int) -> List[SourcePost]:
        return await self._get_list(f"/users/{user_id}/posts", SourcePost)

    async def get_post_comments(self, post_id: int) -> List[SourceComment]:
        return await self._get_list(f"/posts/{post_id}/comments", SourceComment)

    async def aclose(self) -> None:
        """Close HTTP client connection pool"""
        await self.client.aclose()
        logger.debug("🔌 Content source client closed")

    async def __aenter__(self) -> "ContentSourceClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


def create_content_source_client(**kwargs: Any) -> ContentSourceClient:
    """
    Factory function to create the content source client

    Returns:
        Configured ContentSourceClient instance
    """
    return ContentSourceClient(**kwargs)
