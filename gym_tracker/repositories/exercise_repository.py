from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_, exists, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import selectinload
from gym_tracker.models.exercise import Exercise, ExerciseAlias
from gym_tracker.models.program import ProgramDayExercise
from gym_tracker.models.workout import SessionExercise
from gym_tracker.repositories.base import Repository


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ExerciseRepository(Repository[Exercise, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _visible_to(user_id: int):
        return or_(Exercise.user_id.is_(None), Exercise.user_id == user_id)

    async def get(self, id: int) -> Exercise | None:
        return await self._session.get(Exercise, id)

    async def find_by_name(self, user_id: int, name: str) -> Exercise | None:
        result = await self._session.execute(
            select(Exercise)
            .where(
                and_(
                    func.lower(Exercise.name) == name.lower(),
                    self._visible_to(user_id),
                )
            )
            # user-owned rows first
            .order_by(Exercise.user_id.is_(None), Exercise.id)
            .limit(1)
        )
        return result.scalars().first()

    async def find_by_alias(self, user_id: int, alias: str) -> Exercise | None:
        result = await self._session.execute(
            select(Exercise)
            .join(ExerciseAlias, ExerciseAlias.exercise_id == Exercise.id)
            .where(
                and_(
                    func.lower(ExerciseAlias.alias) == alias.lower(),
                    self._visible_to(user_id),
                )
            )
            .order_by(Exercise.user_id.is_(None), Exercise.id)
            .limit(1)
        )
        return result.scalars().first()

    async def find_partial(self, user_id: int, fragment: str) -> Exercise | None:
        pattern = f"%{escape_like(fragment)}%"
        alias_hits = select(ExerciseAlias.exercise_id).where(
            ExerciseAlias.alias.ilike(pattern, escape="\\")
        )
        result = await self._session.execute(
            select(Exercise)
            .where(
                and_(
                    self._visible_to(user_id),
                    or_(
                        Exercise.name.ilike(pattern, escape="\\"),
                        Exercise.id.in_(alias_hits),
                    ),
                )
            )
            .order_by(Exercise.user_id.is_(None), func.length(Exercise.name), Exercise.id)
            .limit(1)
        )
        return result.scalars().first()

    async def search(
        self,
        user_id: int,
        query: str | None = None,
        muscle_group: str | None = None,
        limit: int | None = None,
    ) -> list[Exercise]:
        stmt = (
            select(Exercise)
            .options(selectinload(Exercise.aliases))
            .where(self._visible_to(user_id))
        )

        if query:
            pattern = f"%{escape_like(query)}%"
            alias_hits = select(ExerciseAlias.exercise_id).where(
                ExerciseAlias.alias.ilike(pattern, escape="\\")
            )
            stmt = stmt.where(or_(Exercise.name.ilike(pattern, escape="\\"), Exercise.id.in_(alias_hits)))

        if muscle_group:
            stmt = stmt.where(Exercise.muscle_group.ilike(f"%{escape_like(muscle_group)}%", escape="\\"))

        stmt = stmt.order_by(Exercise.name)
        if limit:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add_aliases(self, exercise_id: int, aliases: list[str]) -> None:
        values = [{"exercise_id": exercise_id, "alias": alias.strip()} for alias in aliases if alias.strip()]
        if not values:
            return
        await self._session.execute(pg_insert(ExerciseAlias).values(values).on_conflict_do_nothing())

    async def is_referenced(self, exercise_id: int) -> bool:
        result = await self._session.execute(
            select(
                or_(
                    exists().where(SessionExercise.exercise_id == exercise_id),
                    exists().where(ProgramDayExercise.exercise_id == exercise_id),
                )
            )
        )
        return bool(result.scalar())

    async def delete(self, entity: Exercise) -> None:
        await self._session.delete(entity)
        await self._session.flush()
