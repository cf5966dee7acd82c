# tests/conftest.py
"""
Shared test fixtures
In-memory SQLite database, in-memory typed cache and seeded pipeline data
"""

import os

# Settings are read on first import; keep tests off real brokers and files
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("LOG_FILE_PATH", "")

import pytest
import redis
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from commentflow.app.config import ClassificationSettings, ContentSourceSettings
from commentflow.app.models import Base, Comment, CommentStatus, Keyword, Post, User
from commentflow.domain.interfaces import NullTaskPublisher
from commentflow.infrastructure.cache import MemoryCacheBackend, TypedCache

pytest_plugins = ("pytest_asyncio",)


# ============================================================================
# Database
# ============================================================================


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine for testing"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,  # Required for in-memory SQLite
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine):
    """Create async database session for testing"""
    async_session = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


# ============================================================================
# Cache / Publisher / Settings
# ============================================================================


@pytest.fixture
def cache():
    """Fresh in-memory typed cache per test"""
    return TypedCache(MemoryCacheBackend(), environment="test")


class UnreachableBackend(MemoryCacheBackend):
    """Backend whose store connection is down"""

    def get(self, key):
        raise redis.ConnectionError("connection refused")

    def set(self, key, value, ttl_seconds=None):
        raise redis.ConnectionError("connection refused")

    def increment(self, key, amount=1, ttl_seconds=None):
        raise redis.ConnectionError("connection refused")


@pytest.fixture
def unreachable_cache():
    """Typed cache whose store is down"""
    return TypedCache(UnreachableBackend(), environment="test")


@pytest.fixture
def publisher():
    return NullTaskPublisher()


@pytest.fixture
def classification_settings():
    return ClassificationSettings(minimum_keywords=2, keyword_cache_minutes=30)


@pytest.fixture
def source_settings():
    return ContentSourceSettings(max_retries=3, retry_delay=0.5, request_timeout=5)


# ============================================================================
# Seed Data
# ============================================================================


@pytest_asyncio.fixture
async def sample_user(db_session):
    user = User(external_id=1, username="alice", name="Alice", email="alice@example.com")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def sample_post(db_session, sample_user):
    post = Post(external_id=10, user_id=sample_user.id, title="First post", body="Hello")
    db_session.add(post)
    await db_session.commit()
    await db_session.refresh(post)
    return post


@pytest_asyncio.fixture
async def make_comment(db_session, sample_post):
    """Factory creating comments on the sample post"""
    counter = {"next": 100}

    async def _make(
        body="Este produto é ótimo e excelente",
        status=CommentStatus.NEW,
        name="Bob",
        email="bob@example.com",
        translated_body=None,
        keyword_count=None,
        post=None,
    ):
        counter["next"] += 1
        comment = Comment(
            external_id=counter["next"],
            post_id=(post or sample_post).id,
            name=name,
            email=email,
            body=body,
            translated_body=translated_body,
            status=status,
            keyword_count=keyword_count,
        )
        db_session.add(comment)
        await db_session.commit()
        await db_session.refresh(comment)
        return comment

    return _make


@pytest_asyncio.fixture
async def keywords(db_session):
    """Small active keyword dictionary"""
    words = ["ótimo", "excelente", "recomendo", "bom"]
    for word in words:
        db_session.add(Keyword(word=word, active=True))
    await db_session.commit()
    return words
