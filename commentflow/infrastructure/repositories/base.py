# commentflow/infrastructure/repositories/base.py
"""
Base Repository Pattern
Generic async CRUD and idempotent upsert for all entities
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar, cast

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from commentflow.app.database import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Repository with generic CRUD operations

    Usage:
        class PostRepository(BaseRepository[Post]):
            def __init__(self, session: AsyncSession):
                super().__init__(session, Post)
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        Initialize repository

        Args:
            session: Database session
            model: SQLAlchemy model class
        """
        self.session = session
        self.model = model

    def _id_col(self) -> InstrumentedAttribute:
        return cast(InstrumentedAttribute, getattr(self.model, "id"))

    def _filtered(self, query, filters: Dict[str, Any]):
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no column '{key}'")
            column = getattr(self.model, key)
            query = query.where(column.is_(None) if value is None else column == value)
        return query

    # ========================================================================
    # CREATE Operations
    # ========================================================================

    async def create(self, **kwargs) -> ModelType:
        """
        Create new entity

        Args:
            **kwargs: Model attributes

        Returns:
            Created model instance
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.commit()
            await self.session.refresh(instance)
            logger.debug(f"✅ Created {self.model.__name__}: {instance.id}")
            return instance
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to create {self.model.__name__}: {e}")
            raise

    async def upsert_by_external_id(
        self, external_id: int, **values
    ) -> Tuple[ModelType, bool]:
        """
        Insert or update keyed by the content source id

        A concurrent insert of the same external id (at-least-once delivery)
        is resolved by re-reading the winner and updating it.

        Args:
            external_id: Stable id from the content source
            **values: Attributes to set

        Returns:
            (instance, created)
        """
        instance = await self.find_one_by(external_id=external_id)

        if instance is None:
            try:
                instance = self.model(external_id=external_id, **values)
                self.session.add(instance)
                await self.session.commit()
                await self.session.refresh(instance)
                return instance, True
            except IntegrityError:
                await self.session.rollback()
                logger.warning(
                    f"⚠️ Concurrent insert of {self.model.__name__} "
                    f"external_id={external_id}, updating instead"
                )
                instance = await self.find_one_by(external_id=external_id)
                if instance is None:
                    raise

        try:
            for key, value in values.items():
                setattr(instance, key, value)
            await self.session.commit()
            await self.session.refresh(instance)
            return instance, False
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to upsert {self.model.__name__}: {e}")
            raise

    # ========================================================================
    # READ Operations
    # ========================================================================

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Get entity by primary key

        Args:
            id: Entity ID

        Returns:
            Model instance or None
        """
        return await self.session.get(self.model, id)

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        query = select(self.model).order_by(self._id_col()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count(self, **filters) -> int:
        """
        Count entities matching filters

        Args:
            **filters: Column equality filters

        Returns:
            Count of matching records
        """
        query = self._filtered(select(func.count()).select_from(self.model), filters)
        result = await self.session.execute(query)
        return int(result.scalar_one_or_none() or 0)

    async def find_by(self, **filters) -> List[ModelType]:
        """
        Find entities by filters

        Args:
            **filters: Field-value pairs to filter by (None matches NULL)

        Returns:
            List of matching model instances
        """
        query = self._filtered(select(self.model), filters).order_by(self._id_col())
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_one_by(self, **filters) -> Optional[ModelType]:
        query = self._filtered(select(self.model), filters)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    # ========================================================================
    # UPDATE / DELETE Operations
    # ========================================================================

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """
        Update entity by ID

        Args:
            id: Entity ID
            **kwargs: Fields to update

        Returns:
            Updated model instance or None
        """
        try:
            stmt = update(self.model).where(self._id_col() == id).values(**kwargs)
            await self.session.execute(stmt)
            await self.session.commit()
            updated = await self.get_by_id(id)
            if updated:
                await self.session.refresh(updated)
            return updated
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to update {self.model.__name__}: {e}")
            raise

    async def delete(self, id: int) -> bool:
        try:
            result = await self.session.execute(
                delete(self.model).where(self._id_col() == id)
            )
            await self.session.commit()
            deleted = result.rowcount > 0
            if not deleted:
                logger.warning(f"⚠️ {self.model.__name__} not found for deletion: {id}")
            return deleted
        except Exception as e:
            await self.session.rollback()
            logger.error(f"❌ Failed to delete {self.model.__name__}: {e}")
            raise
