"""Repositories package."""
from gym_tracker.repositories.base import Repository
from gym_tracker.repositories.exercise_repository import ExerciseRepository
from gym_tracker.repositories.profile_repository import MeasurementRepository, ProfileRepository
from gym_tracker.repositories.program_repository import ProgramRepository
from gym_tracker.repositories.record_repository import RecordRepository
from gym_tracker.repositories.session_repository import SessionRepository

__all__ = [
    "Repository",
    "ExerciseRepository",
    "MeasurementRepository",
    "ProfileRepository",
    "ProgramRepository",
    "RecordRepository",
    "SessionRepository",
]
