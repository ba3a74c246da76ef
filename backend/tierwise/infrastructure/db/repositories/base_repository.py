"""
Base Repository for Tierwise

Generic async repository for tables with an integer primary key.
Writes only flush; the session owner commits.
"""

from typing import TypeVar, Generic, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from tierwise.infrastructure.exceptions import NotFoundError


ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository.

    Args:
        model: The SQLModel table class
        session: Async database session owned by the caller
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def table_name(self) -> str:
        return self._model.__tablename__

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        return await self._session.get(self._model, id)

    async def get_or_raise(self, id: int) -> ModelType:
        """
        Load a row by primary key.

        Raises:
            NotFoundError if no row has that id
        """
        db_obj = await self.get_by_id(id)
        if db_obj is None:
            raise NotFoundError(
                f"{self.table_name} row {id} not found",
                operation="get",
                table=self.table_name,
            )
        return db_obj

    async def save(self, db_obj: ModelType) -> ModelType:
        """Stage a row, flush it and reload server-side defaults."""
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj
