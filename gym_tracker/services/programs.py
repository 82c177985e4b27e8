"""
Program management.

Metadata edits (name, description, activation) change the program row in
place. Anything that touches days or exercises produces a new version: either
built from scratch (`update` with days) or cloned from the latest version and
then modified (`patch`, `add_day`, `remove_day`).
"""
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from gym_tracker.core.locks import LockNamespace, lock_namespaced
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.models.program import Program
from gym_tracker.repositories.program_repository import ProgramRepository
from gym_tracker.schemas.program import DayInput, ManageProgramParams
from gym_tracker.services.base import BaseService
from gym_tracker.services.exercise_resolver import ExerciseResolver
from gym_tracker.services.grouping import insert_group, insert_section
from gym_tracker.services.profile import ProfileService
from gym_tracker.services.program_versions import ProgramVersionService

logger = get_logger(__name__)


class ExerciseSummary:
    """Tracks which exercise names a program build created versus found."""

    def __init__(self):
        self.created: list[str] = []
        self.existing: list[str] = []

    def add(self, name: str, is_new: bool) -> None:
        target = self.created if is_new else self.existing
        if name not in self.created and name not in self.existing:
            target.append(name)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "existing": self.existing,
            "total": len(self.created) + len(self.existing),
        }


class ProgramService(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._repo = ProgramRepository(session)
        self._resolver = ExerciseResolver(session, user_id)
        self._versions = ProgramVersionService(session, user_id)
        self._profile = ProfileService(session, user_id)

    @transactional()
    async def manage(self, params: ManageProgramParams) -> dict:
        handler = getattr(self, f"_{params.action}")
        return await handler(params)

    async def _find(self, name: str | None) -> dict | None:
        """Program by name, or the active one, with its latest version."""
        if not name:
            return await self._repo.get_active(self.user_id)
        program = await self._repo.get_by_name(self.user_id, name)
        if program is None:
            return None
        latest = await self._repo.get_latest_version(program.id)
        return {
            "id": program.id,
            "name": program.name,
            "description": program.description,
            "version_id": latest.id if latest else None,
            "version_number": latest.version_number if latest else None,
        }

    async def _require(self, name: str | None) -> dict:
        program = await self._find(name)
        if program is None:
            raise NotFoundError("Program", f'Program "{name}" not found' if name else "No active program found")
        return program

    async def _require_latest(self, name: str | None) -> dict:
        program = await self._require(name)
        if program["version_id"] is None:
            raise NotFoundError("ProgramVersion", f'Program "{program["name"]}" has no versions')
        return program

    async def _list(self, params: ManageProgramParams) -> dict:
        programs = await self._repo.list_for_user(self.user_id)
        active = next((p for p in programs if p["is_active"]), None)
        return {"active_program": active["name"] if active else None, "programs": programs}

    async def _get(self, params: ManageProgramParams) -> dict:
        program = await self._require_latest(params.name)
        summary = {
            "name": program["name"],
            "description": program["description"],
            "version": program["version_number"],
        }
        if params.include_exercises:
            locale = await self._profile.get_user_locale()
            summary["days"] = await self._versions.get_days_with_exercises(program["version_id"], locale)
            return {"program": summary}

        days = await self._repo.list_days(program["version_id"])
        return {
            "program": summary,
            "days": [
                {"id": d.id, "day_label": d.day_label, "weekdays": list(d.weekdays or []), "sort_order": d.sort_order}
                for d in days
            ],
        }

    async def _create(self, params: ManageProgramParams) -> dict:
        if await self._repo.get_by_name(self.user_id, params.name) is not None:
            raise ConflictError(
                f'Program "{params.name}" already exists. Use action "update" to modify it, or "delete" first to recreate.',
                details={"name": params.name},
            )

        await self._repo.deactivate_all(self.user_id)
        program = await self._repo.create(
            Program(user_id=self.user_id, name=params.name, description=params.description, is_active=True)
        )
        version_id = await self._repo.insert_version(program.id, 1, params.change_description or "Initial version")

        summary = ExerciseSummary()
        for i, day in enumerate(params.days):
            await self._build_day(version_id, day, i, summary)

        logger.info("program_created", program_id=program.id, days=len(params.days))
        return {
            "program": {"id": program.id, "name": program.name, "version": 1},
            "days_created": len(params.days),
            "exercises_summary": summary.to_dict(),
        }

    async def _update(self, params: ManageProgramParams) -> dict:
        program = await self._require(params.name)

        if not params.days:
            values: dict[str, Any] = {}
            if params.new_name:
                clash = await self._repo.get_by_name(self.user_id, params.new_name)
                if clash is not None and clash.id != program["id"]:
                    raise ConflictError(f'Program "{params.new_name}" already exists', details={"name": params.new_name})
                values["name"] = params.new_name
            if "description" in params.model_fields_set:
                values["description"] = params.description or None
            if not values:
                raise ValidationError(
                    "days",
                    "Provide days array for versioned update, or new_name/description for metadata update",
                )
            await self._repo.update_metadata(program["id"], values)
            return {
                "updated": {
                    "id": program["id"],
                    "name": values.get("name", program["name"]),
                    "description": values.get("description", program["description"]),
                }
            }

        await lock_namespaced(self._session, LockNamespace.PROGRAM, program["id"])
        version_number = await self._repo.max_version_number(program["id"]) + 1
        version_id = await self._repo.insert_version(program["id"], version_number, params.change_description)

        summary = ExerciseSummary()
        for i, day in enumerate(params.days):
            await self._build_day(version_id, day, i, summary)

        logger.info("program_versioned", program_id=program["id"], version=version_number)
        return {
            "program": {"name": program["name"], "version": version_number},
            "change_description": params.change_description,
            "exercises_summary": summary.to_dict(),
        }

    async def _patch(self, params: ManageProgramParams) -> dict:
        program = await self._require_latest(params.name)
        changes = params.changes.as_column_values()
        if not changes:
            raise ValidationError("changes", "No changes provided")

        day = await self._repo.get_day_by_label(program["version_id"], params.day)
        if day is None:
            raise NotFoundError("ProgramDay", f'Day "{params.day}" not found', {"day": params.day})
        exercise = await self._resolver.find(params.exercise)
        if exercise is None:
            raise NotFoundError("Exercise", f'Exercise "{params.exercise}" not found', {"exercise": params.exercise})
        if await self._repo.find_day_exercise(day.id, exercise.id) is None:
            raise NotFoundError(
                "ProgramDayExercise",
                f'"{exercise.name}" is not part of day "{day.day_label}"',
                {"day": day.day_label, "exercise": exercise.name},
            )

        cloned = await self._versions.clone_version(
            program["id"],
            program["version_id"],
            params.change_description or f"Patched {exercise.name} on {day.day_label}",
        )
        target = await self._repo.find_day_exercise(cloned.day_map[day.id], exercise.id)
        await self._repo.update_day_exercise(target.id, changes)

        return {
            "program": {"name": program["name"], "version": cloned.version_number},
            "day": day.day_label,
            "exercise": exercise.name,
            "changes": params.changes.model_dump(exclude_unset=True),
        }

    async def _add_day(self, params: ManageProgramParams) -> dict:
        program = await self._require_latest(params.name)
        new_day = params.new_day
        if await self._repo.get_day_by_label(program["version_id"], new_day.day_label) is not None:
            raise ConflictError(f'Day "{new_day.day_label}" already exists', details={"day": new_day.day_label})

        cloned = await self._versions.clone_version(
            program["id"],
            program["version_id"],
            params.change_description or f"Added day {new_day.day_label}",
        )
        summary = ExerciseSummary()
        sort_order = await self._repo.next_day_sort_order(cloned.version_id)
        await self._build_day(cloned.version_id, new_day, sort_order, summary)

        return {
            "program": {"name": program["name"], "version": cloned.version_number},
            "day_added": new_day.day_label,
            "exercises_summary": summary.to_dict(),
        }

    async def _remove_day(self, params: ManageProgramParams) -> dict:
        program = await self._require_latest(params.name)
        day = await self._repo.get_day_by_label(program["version_id"], params.day)
        if day is None:
            raise NotFoundError("ProgramDay", f'Day "{params.day}" not found', {"day": params.day})

        cloned = await self._versions.clone_version(
            program["id"],
            program["version_id"],
            params.change_description or f"Removed day {day.day_label}",
        )
        await self._repo.delete_day(cloned.day_map[day.id])

        return {
            "program": {"name": program["name"], "version": cloned.version_number},
            "day_removed": day.day_label,
        }

    async def _activate(self, params: ManageProgramParams) -> dict:
        program = await self._repo.get_by_name(self.user_id, params.name)
        if program is None:
            raise NotFoundError("Program", f'Program "{params.name}" not found')
        await self._repo.activate_only(self.user_id, program.id)
        return {
            "activated": program.name,
            "message": f'"{program.name}" is now the active program. All other programs deactivated.',
        }

    async def _delete(self, params: ManageProgramParams) -> dict:
        program = await self._repo.get_by_name(self.user_id, params.name)
        if program is None:
            raise NotFoundError("Program", f'Program "{params.name}" not found')
        name = program.name

        if params.hard_delete:
            await self._repo.delete_program(program.id)
            logger.info("program_deleted", program_id=program.id)
            return {
                "deleted": name,
                "message": f'"{name}" has been permanently deleted with all versions, days, and exercise assignments.',
            }

        await self._repo.deactivate(program.id)
        return {
            "deactivated": name,
            "message": f'"{name}" has been deactivated. Use "activate" to reactivate it, or hard_delete=true to remove it.',
        }

    async def _delete_bulk(self, params: ManageProgramParams) -> dict:
        done: list[str] = []
        not_found: list[str] = []
        for name in params.names:
            program = await self._repo.get_by_name(self.user_id, name)
            if program is None:
                not_found.append(name)
                continue
            if params.hard_delete:
                await self._repo.delete_program(program.id)
            else:
                await self._repo.deactivate(program.id)
            done.append(program.name)

        result: dict[str, Any] = {"deleted" if params.hard_delete else "deactivated": done}
        if not_found:
            result["not_found"] = not_found
        return result

    async def _history(self, params: ManageProgramParams) -> dict:
        program = await self._require(params.name)
        versions = await self._repo.list_versions(program["id"])
        return {
            "program": program["name"],
            "versions": [
                {
                    "version_number": v.version_number,
                    "change_description": v.change_description,
                    "created_at": v.created_at.isoformat() if v.created_at else None,
                }
                for v in versions
            ],
        }

    async def _build_day(self, version_id: int, day: DayInput, sort_order: int, summary: ExerciseSummary) -> int:
        day_id = await self._repo.insert_day(version_id, day.day_label, day.weekdays, sort_order)

        group_ids = [
            await insert_group(
                self._session, "program_exercise_groups", "day_id", day_id,
                group.group_type, i, group.label, group.notes, group.rest_seconds,
            )
            for i, group in enumerate(day.groups)
        ]
        section_ids = [
            await insert_section(
                self._session, "program_sections", "day_id", day_id, section.label, i, section.notes,
            )
            for i, section in enumerate(day.sections)
        ]

        for j, ex in enumerate(day.exercises):
            resolved = await self._resolver.resolve(ex.exercise)
            summary.add(resolved.name, resolved.is_new)
            await self._repo.insert_day_exercise(
                day_id=day_id,
                exercise_id=resolved.id,
                sort_order=j,
                target_sets=ex.sets,
                target_reps=ex.reps,
                target_weight=ex.weight,
                target_rpe=ex.rpe,
                target_reps_per_set=ex.reps_per_set,
                target_weight_per_set=ex.weight_per_set,
                rest_seconds=ex.rest_seconds,
                notes=ex.notes,
                group_id=group_ids[ex.group] if ex.group is not None else None,
                section_id=section_ids[ex.section] if ex.section is not None else None,
            )
        return day_id
