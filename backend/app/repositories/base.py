from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import BaseModel

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository providing common persistence operations.

    Aggregates are loaded, mutated through their own methods and written
    back with save(), so there is no column-level update helper here.

    Type Parameters:
        ModelType: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Initialize the repository.

        Args:
            model: The SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """
        Retrieve an entity by its ID.

        Args:
            id: The UUID of the entity

        Returns:
            The entity if found, None otherwise
        """
        stmt = select(self.model).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, instance: ModelType) -> ModelType:
        """
        Insert or update an entity.

        Args:
            instance: New or already-loaded entity

        Returns:
            The entity with server-generated columns refreshed
        """
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def delete(self, instance: ModelType) -> None:
        """
        Delete an entity.

        Args:
            instance: The loaded entity to delete
        """
        await self.db.delete(instance)
        await self.db.flush()

    async def commit(self) -> None:
        """Commit the unit of work held by this repository's session."""
        await self.db.commit()
