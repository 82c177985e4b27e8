from __future__ import annotations
from datetime import date, datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, text, update, insert, delete
from gym_tracker.models.workout import ExerciseSet, SessionExercise, WorkoutSession
from gym_tracker.repositories.base import Repository


class SessionRepository(Repository[WorkoutSession, int]):
    """Workout sessions, their exercises and sets."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, id: int) -> WorkoutSession | None:
        return await self._session.get(WorkoutSession, id)

    async def get_owned(self, id: int, user_id: int) -> WorkoutSession | None:
        result = await self._session.execute(
            select(WorkoutSession).where(
                and_(
                    WorkoutSession.id == id,
                    WorkoutSession.user_id == user_id,
                    WorkoutSession.deleted_at.is_(None),
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_active(self, user_id: int) -> WorkoutSession | None:
        result = await self._session.execute(
            select(WorkoutSession)
            .where(
                and_(
                    WorkoutSession.user_id == user_id,
                    WorkoutSession.ended_at.is_(None),
                    WorkoutSession.deleted_at.is_(None),
                )
            )
            .order_by(WorkoutSession.started_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def create_session(
        self,
        user_id: int,
        program_version_id: int | None = None,
        program_day_id: int | None = None,
        notes: str | None = None,
        tags: list[str] | None = None,
        started_at: datetime | None = None,
        is_validated: bool = True,
    ) -> dict:
        values = {
            "user_id": user_id,
            "program_version_id": program_version_id,
            "program_day_id": program_day_id,
            "notes": notes,
            "tags": tags or [],
            "is_validated": is_validated,
        }
        if started_at is not None:
            values["started_at"] = started_at
        result = await self._session.execute(
            insert(WorkoutSession)
            .values(**values)
            .returning(WorkoutSession.id, WorkoutSession.started_at)
        )
        return dict(result.mappings().one())

    async def link_program_day(self, session_id: int, program_day_id: int, program_version_id: int | None) -> None:
        await self._session.execute(
            update(WorkoutSession)
            .where(WorkoutSession.id == session_id)
            .values(
                program_day_id=program_day_id,
                program_version_id=func.coalesce(WorkoutSession.program_version_id, program_version_id),
            )
        )

    async def set_tags(self, session_id: int, tags: list[str]) -> None:
        await self._session.execute(
            update(WorkoutSession).where(WorkoutSession.id == session_id).values(tags=tags)
        )

    async def append_notes(self, session_id: int, notes: str) -> None:
        await self._session.execute(
            update(WorkoutSession)
            .where(WorkoutSession.id == session_id)
            .values(notes=func.coalesce(WorkoutSession.notes + " " + notes, notes))
        )

    async def end_session(self, session_id: int, notes: str | None = None) -> None:
        await self._session.execute(
            update(WorkoutSession)
            .where(WorkoutSession.id == session_id)
            .values(ended_at=func.now(), notes=func.coalesce(notes, WorkoutSession.notes))
        )

    async def mark_validated(self, session_id: int) -> None:
        await self._session.execute(
            update(WorkoutSession).where(WorkoutSession.id == session_id).values(is_validated=True)
        )

    async def find_for_edit(self, user_id: int, exercise_id: int, scope: str | date) -> int | None:
        """Most recent session holding `exercise_id`, limited to today, a date, or none ("last")."""
        stmt = (
            select(WorkoutSession.id)
            .join(SessionExercise, SessionExercise.session_id == WorkoutSession.id)
            .where(
                and_(
                    WorkoutSession.user_id == user_id,
                    WorkoutSession.deleted_at.is_(None),
                    SessionExercise.exercise_id == exercise_id,
                )
            )
        )
        if scope == "today":
            stmt = stmt.where(func.date(WorkoutSession.started_at) == func.current_date())
        elif isinstance(scope, date):
            stmt = stmt.where(func.date(WorkoutSession.started_at) == scope)
        stmt = stmt.order_by(WorkoutSession.started_at.desc()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def last_completed_for_day(
        self,
        user_id: int,
        program_day_id: int,
        exclude_session_id: int | None = None,
    ) -> WorkoutSession | None:
        conditions = [
            WorkoutSession.user_id == user_id,
            WorkoutSession.program_day_id == program_day_id,
            WorkoutSession.ended_at.is_not(None),
            WorkoutSession.deleted_at.is_(None),
        ]
        if exclude_session_id is not None:
            conditions.append(WorkoutSession.id != exclude_session_id)
        result = await self._session.execute(
            select(WorkoutSession)
            .where(and_(*conditions))
            .order_by(WorkoutSession.started_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def summarize(self, session_id: int) -> dict:
        result = await self._session.execute(
            text(
                """
                SELECT s.started_at, s.ended_at,
                       EXTRACT(EPOCH FROM (COALESCE(s.ended_at, now()) - s.started_at)) / 60 AS duration_minutes,
                       COUNT(DISTINCT se.id) AS exercises_count,
                       COUNT(st.id) AS total_sets,
                       COALESCE(SUM(CASE WHEN st.set_type <> 'warmup'
                                         THEN COALESCE(st.weight, 0) * st.reps ELSE 0 END), 0) AS total_volume_kg
                  FROM sessions s
                  LEFT JOIN session_exercises se ON se.session_id = s.id
                  LEFT JOIN sets st ON st.session_exercise_id = se.id
                 WHERE s.id = :session_id
                 GROUP BY s.id
                """
            ),
            {"session_id": session_id},
        )
        return dict(result.mappings().one())

    # Session exercises

    async def find_session_exercise(self, session_id: int, exercise_id: int, user_id: int) -> dict | None:
        """Existing entry for the exercise in this session, with its current max set number."""
        result = await self._session.execute(
            text(
                """
                SELECT se.id, COALESCE(MAX(st.set_number), 0) AS max_set_number
                  FROM session_exercises se
                  JOIN sessions s ON s.id = se.session_id
                  LEFT JOIN sets st ON st.session_exercise_id = se.id
                 WHERE se.session_id = :session_id
                   AND se.exercise_id = :exercise_id
                   AND s.user_id = :user_id
                 GROUP BY se.id
                 ORDER BY se.id
                 LIMIT 1
                """
            ),
            {"session_id": session_id, "exercise_id": exercise_id, "user_id": user_id},
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def backfill_session_exercise(
        self,
        session_exercise_id: int,
        notes: str | None = None,
        rest_seconds: int | None = None,
        group_id: int | None = None,
    ) -> None:
        values = {}
        if notes:
            values["notes"] = func.coalesce(SessionExercise.notes, notes)
        if rest_seconds is not None:
            values["rest_seconds"] = func.coalesce(SessionExercise.rest_seconds, rest_seconds)
        if group_id is not None:
            values["group_id"] = func.coalesce(SessionExercise.group_id, group_id)
        if not values:
            return
        await self._session.execute(
            update(SessionExercise).where(SessionExercise.id == session_exercise_id).values(**values)
        )

    async def create_session_exercise(
        self,
        session_id: int,
        exercise_id: int,
        notes: str | None = None,
        rest_seconds: int | None = None,
        group_id: int | None = None,
        section_id: int | None = None,
        sort_order: int | None = None,
    ) -> int:
        """Insert a session exercise, appended after the current last one unless sort_order is given."""
        result = await self._session.execute(
            text(
                """
                INSERT INTO session_exercises (session_id, exercise_id, sort_order, notes, rest_seconds, group_id, section_id)
                VALUES (:session_id, :exercise_id,
                        COALESCE(CAST(:sort_order AS integer),
                                 (SELECT MAX(sort_order) + 1 FROM session_exercises WHERE session_id = :session_id),
                                 0),
                        :notes, :rest_seconds, :group_id, :section_id)
                RETURNING id
                """
            ),
            {
                "session_id": session_id,
                "exercise_id": exercise_id,
                "sort_order": sort_order,
                "notes": notes,
                "rest_seconds": rest_seconds,
                "group_id": group_id,
                "section_id": section_id,
            },
        )
        return result.scalar_one()

    async def list_session_exercise_ids(self, session_id: int, exercise_id: int) -> list[int]:
        result = await self._session.execute(
            select(SessionExercise.id)
            .where(
                and_(
                    SessionExercise.session_id == session_id,
                    SessionExercise.exercise_id == exercise_id,
                )
            )
            .order_by(SessionExercise.sort_order, SessionExercise.id)
        )
        return list(result.scalars().all())

    async def delete_session_exercise(self, session_exercise_id: int) -> None:
        await self._session.execute(delete(SessionExercise).where(SessionExercise.id == session_exercise_id))

    # Sets

    async def insert_sets(self, rows: list[dict]) -> list[dict]:
        """Insert all rows in one statement. Returns (id, set_number) ordered by set_number."""
        if not rows:
            return []
        result = await self._session.execute(
            insert(ExerciseSet)
            .values(rows)
            .returning(ExerciseSet.id, ExerciseSet.set_number)
        )
        return sorted((dict(row) for row in result.mappings().all()), key=lambda r: r["set_number"])

    async def list_sets(self, session_exercise_id: int) -> list[dict]:
        result = await self._session.execute(
            select(
                ExerciseSet.id.label("set_id"),
                ExerciseSet.set_number,
                ExerciseSet.reps,
                ExerciseSet.weight,
                ExerciseSet.rpe,
                ExerciseSet.set_type,
                ExerciseSet.notes,
            )
            .where(ExerciseSet.session_exercise_id == session_exercise_id)
            .order_by(ExerciseSet.set_number)
        )
        return [dict(row) for row in result.mappings().all()]

    async def update_sets(self, set_ids: list[int], values: dict) -> int:
        if not set_ids or not values:
            return 0
        result = await self._session.execute(
            update(ExerciseSet).where(ExerciseSet.id.in_(set_ids)).values(**values)
        )
        return result.rowcount

    async def delete_sets(self, set_ids: list[int]) -> int:
        if not set_ids:
            return 0
        result = await self._session.execute(delete(ExerciseSet).where(ExerciseSet.id.in_(set_ids)))
        return result.rowcount

    async def list_exercise_details(self, session_id: int) -> list[dict]:
        """Exercises of a session with their sets aggregated as JSON, in session order."""
        result = await self._session.execute(
            text(
                """
                SELECT se.id AS session_exercise_id, e.id AS exercise_id, e.name, e.names,
                       e.exercise_type, se.group_id, se.section_id,
                       COALESCE(json_agg(json_build_object(
                           'set_id', st.id, 'set_number', st.set_number, 'reps', st.reps,
                           'weight', st.weight, 'rpe', st.rpe, 'set_type', st.set_type
                       ) ORDER BY st.set_number) FILTER (WHERE st.id IS NOT NULL), '[]') AS sets
                  FROM session_exercises se
                  JOIN exercises e ON e.id = se.exercise_id
                  LEFT JOIN sets st ON st.session_exercise_id = se.id
                 WHERE se.session_id = :session_id
                 GROUP BY se.id, e.id, e.name, e.names, e.exercise_type, se.group_id, se.section_id, se.sort_order
                 ORDER BY se.sort_order, se.id
                """
            ),
            {"session_id": session_id},
        )
        return [dict(row) for row in result.mappings().all()]
