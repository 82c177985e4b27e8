from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from gym_tracker.core.locks import LockNamespace, lock_namespaced
from gym_tracker.core.logging import get_logger
from gym_tracker.core.transactions import transactional
from gym_tracker.repositories.program_repository import ProgramRepository
from gym_tracker.repositories.session_repository import SessionRepository
from gym_tracker.schemas.workout import EndSessionParams, StartSessionParams, ValidateSessionParams
from gym_tracker.services.base import BaseService
from gym_tracker.services.grouping import ensure_day_groupings
from gym_tracker.services.profile import ProfileService, get_localized_name
from gym_tracker.services.program_versions import ProgramVersionService
from gym_tracker.services.stats_calculator import check_prs
from gym_tracker.services.workout_logger import WorkoutLogger, session_start_for

logger = get_logger(__name__)


class SessionService(BaseService):
    """Explicit session lifecycle: start, end, and validation of unvalidated sessions."""

    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._sessions = SessionRepository(session)
        self._programs = ProgramRepository(session)
        self._profile = ProfileService(session, user_id)
        self._versions = ProgramVersionService(session, user_id)
        self._logger = WorkoutLogger(session, user_id)

    @transactional()
    async def start_session(self, params: StartSessionParams) -> dict:
        await lock_namespaced(self._session, LockNamespace.USER_SESSION, self.user_id)

        active = await self._sessions.get_active(self.user_id)
        if active is not None:
            raise ConflictError(
                "There is already an active session",
                details={
                    "session_id": active.id,
                    "started_at": active.started_at.isoformat() if active.started_at else None,
                },
            )

        timezone = await self._profile.get_user_timezone()
        locale = await self._profile.get_user_locale()
        program = await self._programs.get_active(self.user_id)
        day = None
        if program is not None:
            if params.program_day:
                day = await self._programs.get_day_by_label(program["version_id"], params.program_day)
                if day is None:
                    raise NotFoundError(
                        "ProgramDay",
                        f"No program day '{params.program_day}' in the active program",
                        {"program_day": params.program_day},
                    )
            else:
                day = await self._versions.infer_today_day(program["id"], timezone)

        created = await self._sessions.create_session(
            self.user_id,
            program_version_id=program["version_id"] if program else None,
            program_day_id=day.id if day else None,
            notes=params.notes,
            tags=params.tags,
            started_at=session_start_for(params.date, timezone) if params.date else None,
            is_validated=not await self._profile.requires_validation(),
        )
        if day is not None:
            await ensure_day_groupings(self._session, day.id, created["id"])
        logger.info("session_created", session_id=created["id"], program_day_id=day.id if day else None)

        result = await self._logger.session_overview(created["id"], True, day, True, locale)
        result.pop("session_created", None)
        result["started_at"] = created["started_at"].isoformat() if created["started_at"] else None
        return result

    @transactional()
    async def end_session(self, params: EndSessionParams) -> dict:
        active = await self._sessions.get_active(self.user_id)
        if active is None:
            raise NotFoundError("Session", "No active session")

        await self._sessions.end_session(active.id, params.notes)
        summary = await self._sessions.summarize(active.id)
        locale = await self._profile.get_user_locale()
        exercises = await self._sessions.list_exercise_details(active.id)

        logger.info("session_ended", session_id=active.id)
        return {
            "session_id": active.id,
            "duration_minutes": round(float(summary["duration_minutes"] or 0)),
            "exercises_count": int(summary["exercises_count"]),
            "total_sets": int(summary["total_sets"]),
            "total_volume_kg": round(float(summary["total_volume_kg"] or 0)),
            "exercises": [
                {
                    "name": get_localized_name(ex["names"], locale, ex["name"]),
                    "group_id": ex["group_id"],
                    "section_id": ex["section_id"],
                    "sets": ex["sets"],
                }
                for ex in exercises
            ],
        }

    @transactional()
    async def validate_session(self, params: ValidateSessionParams) -> dict:
        """Mark a session validated and run the PR checks that were skipped while it was not."""
        if params.session_id is not None:
            target = await self._sessions.get_owned(params.session_id, self.user_id)
            if target is None:
                raise NotFoundError("Session", f"Session {params.session_id} not found", {"session_id": params.session_id})
        else:
            target = await self._sessions.get_active(self.user_id)
            if target is None:
                raise NotFoundError("Session", "No active session to validate")

        if target.is_validated:
            raise BusinessRuleError("Session is already validated", details={"session_id": target.id})

        await self._sessions.mark_validated(target.id)

        locale = await self._profile.get_user_locale()
        new_prs = []
        for ex in await self._sessions.list_exercise_details(target.id):
            prs = await check_prs(
                self.user_id,
                ex["exercise_id"],
                [{"reps": s["reps"], "weight": s["weight"], "set_id": s["set_id"]} for s in ex["sets"]],
                exercise_type=ex["exercise_type"],
                session=self._session,
                achieved_at=target.started_at,
            )
            name = get_localized_name(ex["names"], locale, ex["name"])
            new_prs.extend({"exercise": name, **pr.to_dict()} for pr in prs)

        logger.info("session_validated", session_id=target.id, prs=len(new_prs))
        result = {"session_id": target.id, "validated": True}
        if new_prs:
            result["new_prs"] = new_prs
        return result
