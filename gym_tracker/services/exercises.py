from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import (
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.models.exercise import Exercise
from gym_tracker.repositories.exercise_repository import ExerciseRepository
from gym_tracker.schemas.exercise import ManageExercisesParams
from gym_tracker.services.base import BaseService
from gym_tracker.services.exercise_resolver import ExerciseResolver
from gym_tracker.services.profile import ProfileService

logger = get_logger(__name__)


class ExerciseCatalogService(BaseService):
    """manage_exercises: browse the catalog and maintain the caller's own exercises.

    Global rows are read-only. User-owned rows can be changed by their owner and
    deleted only while no session or program references them.
    """

    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._repo = ExerciseRepository(session)
        self._resolver = ExerciseResolver(session, user_id)
        self._profile = ProfileService(session, user_id)

    @transactional()
    async def manage(self, params: ManageExercisesParams) -> dict:
        if params.action in ("list", "search"):
            locale = await self._profile.get_user_locale()
            query = (params.query or params.name) if params.action == "search" else None
            exercises = await self._resolver.search(query, params.muscle_group, locale, params.limit)
            return {"exercises": exercises}
        if params.action == "add":
            return await self._add(params)
        if params.action == "update":
            return await self._update(params)
        return await self._delete(params)

    async def _owned(self, name: str) -> Exercise:
        exercise = await self._repo.find_by_name(self.user_id, name.strip())
        if exercise is None:
            raise NotFoundError("Exercise", f'Exercise "{name}" not found', {"exercise": name})
        if exercise.user_id != self.user_id:
            raise AuthorizationError(
                f'"{exercise.name}" is a global exercise and cannot be modified',
                details={"exercise": exercise.name},
            )
        return exercise

    async def _add(self, params: ManageExercisesParams) -> dict:
        name = params.name.strip()
        existing = await self._repo.find_by_name(self.user_id, name)
        if existing is not None:
            if params.aliases and existing.user_id == self.user_id:
                await self._repo.add_aliases(existing.id, params.aliases)
            return {
                "exercise": {"id": existing.id, "name": existing.name, "is_global": existing.user_id is None},
                "created": False,
            }

        created = await self._resolver.create(
            name,
            muscle_group=params.muscle_group,
            equipment=params.equipment,
            rep_type=params.rep_type,
            exercise_type=params.exercise_type,
            description=params.description,
            names=params.names,
        )
        if params.aliases:
            await self._repo.add_aliases(created.id, params.aliases)
        return {
            "exercise": {"id": created.id, "name": created.name, "is_global": False},
            "created": created.is_new,
            "aliases": params.aliases or [],
        }

    async def _update(self, params: ManageExercisesParams) -> dict:
        exercise = await self._owned(params.name)

        values: dict[str, Any] = {}
        if params.new_name and params.new_name.strip() != exercise.name:
            clash = await self._repo.find_by_name(self.user_id, params.new_name.strip())
            if clash is not None and clash.id != exercise.id and clash.user_id == self.user_id:
                raise ConflictError(f'Exercise "{params.new_name}" already exists', details={"exercise": params.new_name})
            values["name"] = params.new_name.strip()
        for field in ("muscle_group", "equipment", "rep_type", "exercise_type", "description"):
            value = getattr(params, field)
            if value is not None:
                values[field] = value
        if params.names:
            values["names"] = {**(exercise.names or {}), **params.names}

        if not values and not params.aliases:
            raise ValidationError(
                "name",
                "Provide at least one field to update (new_name, muscle_group, equipment, rep_type, exercise_type, description, names, aliases)",
            )

        for field, value in values.items():
            setattr(exercise, field, value)
        await self._session.flush()
        if params.aliases:
            await self._repo.add_aliases(exercise.id, params.aliases)

        logger.info("exercise_updated", exercise_id=exercise.id, fields=sorted(values))
        return {
            "updated": {
                "id": exercise.id,
                "name": exercise.name,
                "muscle_group": exercise.muscle_group,
                "equipment": exercise.equipment,
                "rep_type": exercise.rep_type,
                "exercise_type": exercise.exercise_type,
            }
        }

    async def _delete(self, params: ManageExercisesParams) -> dict:
        exercise = await self._owned(params.name)
        if await self._repo.is_referenced(exercise.id):
            raise BusinessRuleError(
                f'"{exercise.name}" is used by logged sessions or programs and cannot be deleted',
                code="BR_EXERCISE_IN_USE",
                details={"exercise": exercise.name},
            )
        deleted = {"id": exercise.id, "name": exercise.name}
        await self._repo.delete(exercise)
        logger.info("exercise_deleted", exercise_id=deleted["id"])
        return {"deleted": deleted}
