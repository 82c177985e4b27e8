from __future__ import annotations
import json
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, text, update, delete
from gym_tracker.models.exercise import Exercise
from gym_tracker.models.program import (
    Program,
    ProgramDay,
    ProgramDayExercise,
    ProgramExerciseGroup,
    ProgramSection,
    ProgramVersion,
)
from gym_tracker.repositories.base import Repository


_CLONE_DAY_EXERCISES = text(
    """
    INSERT INTO program_day_exercises
        (day_id, exercise_id, sort_order, target_sets, target_reps, target_weight, target_rpe,
         target_reps_per_set, target_weight_per_set, rest_seconds, notes, group_id, section_id)
    SELECT CAST(:target_day_id AS integer), exercise_id, sort_order, target_sets, target_reps, target_weight, target_rpe,
           target_reps_per_set, target_weight_per_set, rest_seconds, notes,
           (CAST(:group_map AS jsonb) ->> group_id::text)::int,
           (CAST(:section_map AS jsonb) ->> section_id::text)::int
      FROM program_day_exercises
     WHERE day_id = :source_day_id
     ORDER BY sort_order, id
    """
)


class ProgramRepository(Repository[Program, int]):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> Program | None:
        return await self._session.get(Program, id)

    async def get_owned(self, id: int, user_id: int) -> Program | None:
        result = await self._session.execute(
            select(Program).where(and_(Program.id == id, Program.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def get_by_name(self, user_id: int, name: str) -> Program | None:
        result = await self._session.execute(
            select(Program).where(
                and_(Program.user_id == user_id, func.lower(Program.name) == name.lower())
            )
        )
        return result.scalars().first()

    async def get_active(self, user_id: int) -> dict | None:
        """Active program joined with its latest version."""
        result = await self._session.execute(
            select(
                Program.id,
                Program.name,
                Program.description,
                ProgramVersion.id.label("version_id"),
                ProgramVersion.version_number,
            )
            .join(ProgramVersion, ProgramVersion.program_id == Program.id)
            .where(and_(Program.user_id == user_id, Program.is_active.is_(True)))
            .order_by(ProgramVersion.version_number.desc())
            .limit(1)
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def list_for_user(self, user_id: int) -> list[dict]:
        result = await self._session.execute(
            text(
                """
                SELECT p.id, p.name, p.description, p.is_active,
                       lv.version_number AS current_version,
                       (SELECT COUNT(*) FROM program_days pd WHERE pd.version_id = lv.id) AS days_count
                  FROM programs p
                  LEFT JOIN LATERAL (
                        SELECT id, version_number FROM program_versions
                         WHERE program_id = p.id
                         ORDER BY version_number DESC LIMIT 1
                  ) lv ON TRUE
                 WHERE p.user_id = :user_id
                 ORDER BY p.is_active DESC, p.name
                """
            ),
            {"user_id": user_id},
        )
        return [dict(row) for row in result.mappings().all()]

    async def deactivate_all(self, user_id: int) -> None:
        await self._session.execute(
            update(Program).where(Program.user_id == user_id).values(is_active=False)
        )

    async def activate_only(self, user_id: int, program_id: int) -> None:
        await self._session.execute(
            update(Program)
            .where(Program.user_id == user_id)
            .values(is_active=(Program.id == program_id))
        )

    async def deactivate(self, program_id: int) -> None:
        await self._session.execute(
            update(Program).where(Program.id == program_id).values(is_active=False)
        )

    async def update_metadata(self, program_id: int, values: dict) -> None:
        await self._session.execute(
            update(Program).where(Program.id == program_id).values(**values)
        )

    async def delete_program(self, program_id: int) -> None:
        await self._session.execute(delete(Program).where(Program.id == program_id))

    # Versions

    async def get_latest_version(self, program_id: int) -> ProgramVersion | None:
        result = await self._session.execute(
            select(ProgramVersion)
            .where(ProgramVersion.program_id == program_id)
            .order_by(ProgramVersion.version_number.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def get_version_number(self, version_id: int, program_id: int, user_id: int) -> int | None:
        result = await self._session.execute(
            select(ProgramVersion.version_number)
            .join(Program, Program.id == ProgramVersion.program_id)
            .where(
                and_(
                    ProgramVersion.id == version_id,
                    ProgramVersion.program_id == program_id,
                    Program.user_id == user_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def max_version_number(self, program_id: int) -> int:
        result = await self._session.execute(
            select(func.coalesce(func.max(ProgramVersion.version_number), 0)).where(
                ProgramVersion.program_id == program_id
            )
        )
        return int(result.scalar() or 0)

    async def insert_version(self, program_id: int, version_number: int, change_description: str | None) -> int:
        result = await self._session.execute(
            text(
                "INSERT INTO program_versions (program_id, version_number, change_description) "
                "VALUES (:program_id, :version_number, :change_description) RETURNING id"
            ),
            {
                "program_id": program_id,
                "version_number": version_number,
                "change_description": change_description,
            },
        )
        return result.scalar_one()

    async def list_versions(self, program_id: int) -> list[ProgramVersion]:
        result = await self._session.execute(
            select(ProgramVersion)
            .where(ProgramVersion.program_id == program_id)
            .order_by(ProgramVersion.version_number.desc())
        )
        return list(result.scalars().all())

    # Days

    async def list_days(self, version_id: int) -> list[ProgramDay]:
        result = await self._session.execute(
            select(ProgramDay)
            .where(ProgramDay.version_id == version_id)
            .order_by(ProgramDay.sort_order, ProgramDay.id)
        )
        return list(result.scalars().all())

    async def list_days_for_clone(self, version_id: int) -> list[dict]:
        """Days of a version with child counts, so empty clones can be skipped."""
        result = await self._session.execute(
            text(
                """
                SELECT d.id, d.sort_order,
                       (SELECT COUNT(*) FROM program_exercise_groups g WHERE g.day_id = d.id) AS group_count,
                       (SELECT COUNT(*) FROM program_sections s WHERE s.day_id = d.id) AS section_count
                  FROM program_days d
                 WHERE d.version_id = :version_id
                 ORDER BY d.sort_order, d.id
                """
            ),
            {"version_id": version_id},
        )
        return [dict(row) for row in result.mappings().all()]

    async def get_day_by_label(self, version_id: int, label: str) -> ProgramDay | None:
        result = await self._session.execute(
            select(ProgramDay)
            .where(
                and_(
                    ProgramDay.version_id == version_id,
                    func.lower(ProgramDay.day_label) == label.lower(),
                )
            )
            .order_by(ProgramDay.sort_order)
            .limit(1)
        )
        return result.scalars().first()

    async def find_day_for_weekday(self, version_id: int, weekday: int) -> ProgramDay | None:
        result = await self._session.execute(
            select(ProgramDay)
            .where(
                and_(
                    ProgramDay.version_id == version_id,
                    ProgramDay.weekdays.any(weekday),
                )
            )
            .order_by(ProgramDay.sort_order, ProgramDay.id)
            .limit(1)
        )
        return result.scalars().first()

    async def insert_day(self, version_id: int, day_label: str, weekdays: list[int] | None, sort_order: int) -> int:
        day = ProgramDay(version_id=version_id, day_label=day_label, weekdays=weekdays, sort_order=sort_order)
        self._session.add(day)
        await self._session.flush()
        return day.id

    async def clone_day(self, source_day_id: int, target_version_id: int) -> int:
        result = await self._session.execute(
            text(
                "INSERT INTO program_days (version_id, day_label, weekdays, sort_order) "
                "SELECT CAST(:target_version_id AS integer), day_label, weekdays, sort_order "
                "FROM program_days WHERE id = :source_day_id RETURNING id"
            ),
            {"target_version_id": target_version_id, "source_day_id": source_day_id},
        )
        return result.scalar_one()

    async def delete_day(self, day_id: int) -> None:
        await self._session.execute(delete(ProgramDay).where(ProgramDay.id == day_id))

    async def next_day_sort_order(self, version_id: int) -> int:
        result = await self._session.execute(
            select(func.coalesce(func.max(ProgramDay.sort_order) + 1, 0)).where(
                ProgramDay.version_id == version_id
            )
        )
        return int(result.scalar() or 0)

    # Day exercises

    async def list_day_exercises(self, day_ids: list[int]) -> list[dict]:
        if not day_ids:
            return []
        columns = ProgramDayExercise.__table__.c
        result = await self._session.execute(
            select(
                *columns,
                Exercise.name.label("exercise_name"),
                Exercise.names.label("exercise_names"),
                Exercise.exercise_type,
                Exercise.rep_type,
            )
            .join(Exercise, Exercise.id == ProgramDayExercise.exercise_id)
            .where(ProgramDayExercise.day_id.in_(day_ids))
            .order_by(ProgramDayExercise.day_id, ProgramDayExercise.sort_order, ProgramDayExercise.id)
        )
        return [dict(row) for row in result.mappings().all()]

    async def list_groups(self, day_ids: list[int]) -> list[ProgramExerciseGroup]:
        if not day_ids:
            return []
        result = await self._session.execute(
            select(ProgramExerciseGroup)
            .where(ProgramExerciseGroup.day_id.in_(day_ids))
            .order_by(ProgramExerciseGroup.day_id, ProgramExerciseGroup.sort_order)
        )
        return list(result.scalars().all())

    async def list_sections(self, day_ids: list[int]) -> list[ProgramSection]:
        if not day_ids:
            return []
        result = await self._session.execute(
            select(ProgramSection)
            .where(ProgramSection.day_id.in_(day_ids))
            .order_by(ProgramSection.day_id, ProgramSection.sort_order)
        )
        return list(result.scalars().all())

    async def insert_day_exercise(self, **values) -> int:
        entity = ProgramDayExercise(**values)
        self._session.add(entity)
        await self._session.flush()
        return entity.id

    async def clone_day_exercises(
        self,
        source_day_id: int,
        target_day_id: int,
        group_map: dict[int, int],
        section_map: dict[int, int],
    ) -> int:
        """Copy every exercise of a day in one statement, remapping group/section ids."""
        result = await self._session.execute(
            _CLONE_DAY_EXERCISES,
            {
                "source_day_id": source_day_id,
                "target_day_id": target_day_id,
                "group_map": json.dumps({str(old): new for old, new in group_map.items()}),
                "section_map": json.dumps({str(old): new for old, new in section_map.items()}),
            },
        )
        return result.rowcount

    async def find_day_exercise(self, day_id: int, exercise_id: int) -> ProgramDayExercise | None:
        result = await self._session.execute(
            select(ProgramDayExercise)
            .where(
                and_(
                    ProgramDayExercise.day_id == day_id,
                    ProgramDayExercise.exercise_id == exercise_id,
                )
            )
            .order_by(ProgramDayExercise.sort_order)
            .limit(1)
        )
        return result.scalars().first()

    async def update_day_exercise(self, day_exercise_id: int, values: dict) -> None:
        await self._session.execute(
            update(ProgramDayExercise)
            .where(ProgramDayExercise.id == day_exercise_id)
            .values(**values)
        )
