"""Tool handlers. Each one receives the call's session and its validated params."""
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
from gym_tracker.services.edit_log import EditLogService
from gym_tracker.services.exercises import ExerciseCatalogService
from gym_tracker.services.measurements import MeasurementService
from gym_tracker.services.profile import ProfileService
from gym_tracker.services.programs import ProgramService
from gym_tracker.services.sessions import SessionService
from gym_tracker.services.stats import StatsService
from gym_tracker.services.workout_logger import WorkoutLogger


async def log_workout(session: AsyncSession, params: LogWorkoutParams) -> dict:
    return await WorkoutLogger(session).log_workout(params)


async def start_session(session: AsyncSession, params: StartSessionParams) -> dict:
    return await SessionService(session).start_session(params)


async def end_session(session: AsyncSession, params: EndSessionParams) -> dict:
    return await SessionService(session).end_session(params)


async def validate_session(session: AsyncSession, params: ValidateSessionParams) -> dict:
    return await SessionService(session).validate_session(params)


async def edit_log(session: AsyncSession, params: EditLogParams) -> dict:
    return await EditLogService(session).edit(params)


async def manage_program(session: AsyncSession, params: ManageProgramParams) -> dict:
    return await ProgramService(session).manage(params)


async def manage_exercises(session: AsyncSession, params: ManageExercisesParams) -> dict:
    return await ExerciseCatalogService(session).manage(params)


async def manage_profile(session: AsyncSession, params: ManageProfileParams) -> dict:
    service = ProfileService(session)
    if params.action == "update":
        return {"profile": await service.update_profile(params.data)}
    return await service.summary()


async def manage_body_measurements(session: AsyncSession, params: ManageBodyMeasurementsParams) -> dict:
    return await MeasurementService(session).manage(params)


async def get_stats(session: AsyncSession, params: GetStatsParams) -> dict:
    return await StatsService(session).get_stats(params)


async def get_today_plan(session: AsyncSession, params: TodayPlanParams) -> dict:
    return await StatsService(session).get_today_plan(params)
