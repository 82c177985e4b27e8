"""Per-exercise statistics and today's planned workout."""
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.core.exceptions import NotFoundError
from gym_tracker.repositories.program_repository import ProgramRepository
from gym_tracker.repositories.record_repository import RecordRepository
from gym_tracker.repositories.session_repository import SessionRepository
from gym_tracker.repositories.stats_repository import StatsRepository
from gym_tracker.schemas.stats import GetStatsParams, TodayPlanParams
from gym_tracker.services.base import BaseService
from gym_tracker.services.exercise_resolver import ExerciseResolver
from gym_tracker.services.profile import ProfileService, get_localized_name
from gym_tracker.services.program_versions import ProgramVersionService
from gym_tracker.services.stats_calculator import estimate_e1rm
from gym_tracker.services.workout_logger import summarize_sets

PERIOD_DAYS: dict[str, int | None] = {
    "week": 7,
    "month": 30,
    "3months": 90,
    "6months": 180,
    "year": 365,
    "all": None,
}


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    days = PERIOD_DAYS[period]
    if days is None:
        return None
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)


def _iso(value):
    return value.isoformat() if hasattr(value, "isoformat") else value


class StatsService(BaseService):
    def __init__(self, session: AsyncSession, user_id: int | None = None):
        super().__init__(session, user_id)
        self._stats = StatsRepository(session)
        self._records = RecordRepository(session)
        self._programs = ProgramRepository(session)
        self._sessions = SessionRepository(session)
        self._resolver = ExerciseResolver(session, user_id)
        self._profile = ProfileService(session, user_id)
        self._versions = ProgramVersionService(session, user_id)

    async def get_stats(self, params: GetStatsParams) -> dict:
        locale = await self._profile.get_user_locale()
        exercise = await self._resolver.find(params.exercise, locale)
        if exercise is None:
            raise NotFoundError("Exercise", f'Exercise "{params.exercise}" not found', {"exercise": params.exercise})

        since = period_start(params.period)
        records = await self._records.list_current(self.user_id, exercise.id)
        progression = await self._stats.progression(self.user_id, exercise.id, since)
        volume = await self._stats.weekly_volume(self.user_id, exercise.id, since)
        freq = await self._stats.frequency(self.user_id, exercise.id, since)
        timeline = await self._records.timeline(self.user_id, exercise.id, since)

        total_sessions = int(freq["total_sessions"] or 0)
        span_weeks = max(1.0, float(freq["span_days"] or 7) / 7)

        return {
            "exercise": exercise.display_name,
            "period": params.period,
            "personal_records": {
                r["record_type"]: {"value": r["value"], "achieved_at": _iso(r["achieved_at"])} for r in records
            },
            "progression": [
                {
                    "date": _iso(row["date"]),
                    "weight": row["weight"],
                    "reps": row["reps"],
                    "estimated_1rm": estimate_e1rm(row["weight"], row["reps"]),
                }
                for row in progression
            ],
            "volume_trend": [
                {"week": _iso(row["week"]), "total_volume_kg": round(float(row["total_volume_kg"]))}
                for row in volume
            ],
            "frequency": {
                "total_sessions": total_sessions,
                "sessions_per_week": round(total_sessions / span_weeks, 1),
            },
            "pr_timeline": [
                {"record_type": row["record_type"], "value": row["value"], "achieved_at": _iso(row["achieved_at"])}
                for row in timeline
            ],
        }

    async def get_today_plan(self, params: TodayPlanParams) -> dict:
        program = await self._programs.get_active(self.user_id)
        if program is None:
            raise NotFoundError("Program", "No active program")

        locale = await self._profile.get_user_locale()
        if params.program_day:
            day = await self._programs.get_day_by_label(program["version_id"], params.program_day)
            if day is None:
                raise NotFoundError("ProgramDay", f'Day "{params.program_day}" not found', {"day": params.program_day})
        else:
            timezone_name = await self._profile.get_user_timezone()
            day = await self._versions.infer_today_day(program["id"], timezone_name)

        if day is None:
            return {
                "program": program["name"],
                "rest_day": True,
                "message": "No workout scheduled for today",
            }

        exercises = await self._programs.list_day_exercises([day.id])
        result = {
            "program": program["name"],
            "day": day.day_label,
            "rest_day": False,
            "exercises": [
                {
                    "name": get_localized_name(ex["exercise_names"], locale, ex["exercise_name"]),
                    "rep_type": ex["rep_type"],
                    "exercise_type": ex["exercise_type"],
                    "target_sets": ex["target_sets"],
                    "target_reps": ex["target_reps"],
                    "target_weight": ex["target_weight"],
                    "target_rpe": ex["target_rpe"],
                    "target_reps_per_set": ex["target_reps_per_set"],
                    "target_weight_per_set": ex["target_weight_per_set"],
                    "rest_seconds": ex["rest_seconds"],
                    "notes": ex["notes"],
                    "group_id": ex["group_id"],
                    "section_id": ex["section_id"],
                }
                for ex in exercises
            ],
        }

        if params.include_last_workout:
            last = await self._sessions.last_completed_for_day(self.user_id, day.id)
            if last is not None:
                details = await self._sessions.list_exercise_details(last.id)
                result["last_workout"] = {
                    "date": _iso(last.started_at),
                    "exercises": [
                        {
                            "name": get_localized_name(ex["names"], locale, ex["name"]),
                            "sets": ex["sets"],
                            "summary": summarize_sets(ex["sets"]),
                        }
                        for ex in details
                        if ex["sets"]
                    ],
                }
        return result
