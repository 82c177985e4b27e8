from dataclasses import dataclass
from typing import Awaitable, Callable

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from gym_tracker.schemas.exercise import ManageExercisesParams
from gym_tracker.schemas.profile import ManageProfileParams
from gym_tracker.schemas.program import ManageProgramParams
from gym_tracker.schemas.stats import GetStatsParams, ManageBodyMeasurementsParams, TodayPlanParams
from gym_tracker.schemas.workout import (
    EditLogParams,
    EndSessionParams,
    LogWorkoutParams,
    StartSessionParams,
    ValidateSessionParams,
)
from gym_tracker.tools import handlers

Handler = Callable[[AsyncSession, BaseModel], Awaitable[dict]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    params_model: type[BaseModel]
    handler: Handler
    description: str
    read_only: bool = False


TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            "log_workout",
            LogWorkoutParams,
            handlers.log_workout,
            "Start or continue today's session and log one exercise, a list of exercises, or a program day.",
        ),
        ToolSpec(
            "start_session",
            StartSessionParams,
            handlers.start_session,
            "Open a session for the active program's day (explicit label or today's weekday).",
        ),
        ToolSpec("end_session", EndSessionParams, handlers.end_session, "Close the open session and summarize it."),
        ToolSpec(
            "validate_session",
            ValidateSessionParams,
            handlers.validate_session,
            "Confirm an unvalidated session and record the personal records it contains.",
        ),
        ToolSpec("edit_log", EditLogParams, handlers.edit_log, "Update or delete logged sets."),
        ToolSpec("manage_program", ManageProgramParams, handlers.manage_program, "Create, version and manage programs."),
        ToolSpec("manage_exercises", ManageExercisesParams, handlers.manage_exercises, "Browse and maintain the exercise catalog."),
        ToolSpec("manage_profile", ManageProfileParams, handlers.manage_profile, "Read or update the training profile."),
        ToolSpec(
            "manage_body_measurements",
            ManageBodyMeasurementsParams,
            handlers.manage_body_measurements,
            "Log body measurements and review their history.",
        ),
        ToolSpec(
            "get_stats",
            GetStatsParams,
            handlers.get_stats,
            "Personal records, progression, volume and frequency for one exercise.",
            read_only=True,
        ),
        ToolSpec(
            "get_today_plan",
            TodayPlanParams,
            handlers.get_today_plan,
            "Today's planned workout from the active program.",
            read_only=True,
        ),
    )
}


def get_tool(name: str) -> ToolSpec | None:
    return TOOLS.get(name)
