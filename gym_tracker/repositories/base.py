from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")
IdT = TypeVar("IdT")


class Repository(Generic[ModelT, IdT]):
    """Data access for one aggregate. Never commits; the caller owns the transaction."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: IdT) -> ModelT | None:
        raise NotImplementedError

    async def create(self, entity: ModelT) -> ModelT:
        self._session.add(entity)
        await self._session.flush()
        return entity
