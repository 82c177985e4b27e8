"""
Free-text exercise name -> catalog entry.

Lookup order, first hit wins, always scoped to global rows plus the caller's own:
exact name, exact alias, partial name/alias (user-owned first, then shortest
name). When nothing matches a user-owned exercise is created. Resolution only
fails on storage errors and on a blank name, which request schemas already reject.
"""
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import ValidationError
from gym_tracker.core.logging import get_logger
from gym_tracker.models.enums import ExerciseType, RepType
from gym_tracker.models.exercise import Exercise
from gym_tracker.repositories.exercise_repository import ExerciseRepository
from gym_tracker.services.base import BaseService
from gym_tracker.services.profile import get_localized_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedExercise:
    id: int
    name: str
    display_name: str
    is_new: bool
    exercise_type: str


class ExerciseResolver(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._repo = ExerciseRepository(session)

    async def find(self, query: str, locale: str | None = None) -> ResolvedExercise | None:
        """Same lookup as `resolve` without the auto-create step."""
        name = query.strip()
        if not name:
            return None
        exercise = await self._lookup(name)
        if exercise is None:
            return None
        return self._to_resolved(exercise, locale, is_new=False)

    async def resolve(
        self,
        query: str,
        muscle_group: str | None = None,
        equipment: str | None = None,
        rep_type: str | None = None,
        exercise_type: str | None = None,
        locale: str | None = None,
    ) -> ResolvedExercise:
        name = query.strip()
        if not name:
            raise ValidationError("exercise", "name must not be blank")
        exercise = await self._lookup(name)
        if exercise is not None:
            await self._fill_metadata_if_missing(exercise, muscle_group, equipment, rep_type, exercise_type)
            return self._to_resolved(exercise, locale, is_new=False)

        return await self.create(name, muscle_group, equipment, rep_type, exercise_type, locale)

    async def create(
        self,
        name: str,
        muscle_group: str | None = None,
        equipment: str | None = None,
        rep_type: str | None = None,
        exercise_type: str | None = None,
        locale: str | None = None,
        description: str | None = None,
        names: dict | None = None,
    ) -> ResolvedExercise:
        """Insert a user-owned exercise; an existing same-name row wins a concurrent race."""
        entity = Exercise(
            user_id=self.user_id,
            name=name,
            names=names,
            muscle_group=muscle_group,
            equipment=equipment,
            rep_type=rep_type or RepType.REPS.value,
            exercise_type=exercise_type or ExerciseType.STRENGTH.value,
            description=description,
        )
        try:
            # Savepoint: a concurrent create of the same name must not poison the outer transaction
            async with self._session.begin_nested():
                created = await self._repo.create(entity)
        except IntegrityError:
            existing = await self._repo.find_by_name(self.user_id, name)
            if existing is None:
                raise
            return self._to_resolved(existing, locale, is_new=False)

        logger.info("exercise_created", exercise_id=created.id, name=created.name)
        return self._to_resolved(created, locale, is_new=True)

    async def search(
        self,
        query: str | None = None,
        muscle_group: str | None = None,
        locale: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        exercises = await self._repo.search(self.user_id, query=query, muscle_group=muscle_group, limit=limit)
        return [
            {
                "id": ex.id,
                "name": ex.name,
                "display_name": get_localized_name(ex.names, locale, ex.name),
                "muscle_group": ex.muscle_group,
                "equipment": ex.equipment,
                "rep_type": ex.rep_type,
                "exercise_type": ex.exercise_type,
                "is_global": ex.user_id is None,
                "aliases": sorted(alias.alias for alias in ex.aliases),
            }
            for ex in exercises
        ]

    async def _lookup(self, name: str) -> Exercise | None:
        exercise = await self._repo.find_by_name(self.user_id, name)
        if exercise is None:
            exercise = await self._repo.find_by_alias(self.user_id, name)
        if exercise is None:
            exercise = await self._repo.find_partial(self.user_id, name)
        return exercise

    async def _fill_metadata_if_missing(
        self,
        exercise: Exercise,
        muscle_group: str | None,
        equipment: str | None,
        rep_type: str | None,
        exercise_type: str | None,
    ) -> None:
        # Global catalog rows are read-only
        if exercise.user_id != self.user_id:
            return

        changed = False
        if muscle_group and not exercise.muscle_group:
            exercise.muscle_group = muscle_group
            changed = True
        if equipment and not exercise.equipment:
            exercise.equipment = equipment
            changed = True
        if rep_type and rep_type != RepType.REPS.value and exercise.rep_type == RepType.REPS.value:
            exercise.rep_type = rep_type
            changed = True
        if (
            exercise_type
            and exercise_type != ExerciseType.STRENGTH.value
            and exercise.exercise_type == ExerciseType.STRENGTH.value
        ):
            exercise.exercise_type = exercise_type
            changed = True

        if changed:
            await self._session.flush()

    @staticmethod
    def _to_resolved(exercise: Exercise, locale: str | None, is_new: bool) -> ResolvedExercise:
        return ResolvedExercise(
            id=exercise.id,
            name=exercise.name,
            display_name=get_localized_name(exercise.names, locale, exercise.name),
            is_new=is_new,
            exercise_type=exercise.exercise_type or ExerciseType.STRENGTH.value,
        )
