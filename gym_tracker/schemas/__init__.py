"""Pydantic request schemas for every tool."""
from gym_tracker.schemas.exercise import ManageExercisesParams
from gym_tracker.schemas.profile import ManageProfileParams, ProfileData
from gym_tracker.schemas.program import DayExercisePatch, DayInput, ManageProgramParams
from gym_tracker.schemas.stats import GetStatsParams, ManageBodyMeasurementsParams, TodayPlanParams
from gym_tracker.schemas.workout import (
    EditLogParams,
    EndSessionParams,
    ExerciseEntry,
    LogWorkoutParams,
    StartSessionParams,
    ValidateSessionParams,
)

__all__ = [
    "DayExercisePatch",
    "DayInput",
    "EditLogParams",
    "EndSessionParams",
    "ExerciseEntry",
    "GetStatsParams",
    "LogWorkoutParams",
    "ManageBodyMeasurementsParams",
    "ManageExercisesParams",
    "ManageProfileParams",
    "ManageProgramParams",
    "ProfileData",
    "StartSessionParams",
    "TodayPlanParams",
    "ValidateSessionParams",
]
