# commentflow/app/database.py
"""
Database Configuration and Session Management
Async SQLAlchemy engine, session factory and declarative base
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from commentflow.app.config import get_config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for models"""


class DatabaseManager:
    """
    Owns the async engine and hands out sessions

    Usage:
        async with db_manager.session() as session:
            repo = CommentRepository(session)
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self._url = url
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def url(self) -> str:
        return self._url or get_config().database.url

    @property
    def engine(self) -> AsyncEngine:
        """Create the engine on first use"""
        if self._engine is None:
            db_config = get_config().database
            echo = db_config.echo if self._echo is None else self._echo

            if self.url.startswith("sqlite"):
                kwargs = {"connect_args": {"check_same_thread": False}}
                if ":memory:" in self.url:
                    kwargs["poolclass"] = StaticPool
            else:
                kwargs = {
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_pre_ping": True,
                }

            self._engine = create_async_engine(self.url, echo=echo, **kwargs)
            logger.info(f"✅ Database engine created: {self.url}")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False
            )
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session scope; rolls back on error"""
        session = self.session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Create all tables defined by models"""
        import commentflow.app.models  # noqa: F401  (register mappers)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created successfully")

    async def drop_tables(self) -> None:
        """Drop all tables (development/testing only)"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("⚠️  All tables dropped")

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("🔌 Database engine disposed")


db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database session

    Usage in FastAPI:
        @router.get("/analysis/{job_id}")
        async def progress(db: AsyncSession = Depends(get_db)):
            ...

    Yields:
        Database session
    """
    async with db_manager.session() as session:
        yield session
