"""Shared repository plumbing over one AsyncSession."""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.db.models import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Lookup and persistence for one model class.

    Rows are never deleted through a repository: workflows are archived,
    permissions move through statuses and sessions keep their history.
    """

    def __init__(self, session: AsyncSession, model_class: type[T]):
        self.session = session
        self.model_class = model_class

    async def get_by_id(self, id: Any) -> T | None:
        return await self.session.get(self.model_class, id)

    async def list_all(self) -> list[T]:
        result = await self.session.execute(select(self.model_class))
        return list(result.scalars().all())

    async def add(self, entity: T) -> T:
        """Insert a new row and load its generated columns."""
        self.session.add(entity)
        return await self.save(entity)

    async def save(self, entity: T) -> T:
        """Flush pending changes and reload defaults such as updated_at."""
        await self.session.flush()
        await self.session.refresh(entity)
        return entity
