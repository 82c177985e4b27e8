"""ORM models. Importing this package registers every table on Base.metadata."""
from gym_tracker.models.enums import (
    ExerciseType,
    ExperienceLevel,
    GroupType,
    RecordType,
    RepType,
    SetType,
    Sex,
    Units,
)
from gym_tracker.models.exercise import Exercise, ExerciseAlias
from gym_tracker.models.program import (
    Program,
    ProgramDay,
    ProgramDayExercise,
    ProgramExerciseGroup,
    ProgramSection,
    ProgramVersion,
)
from gym_tracker.models.record import PersonalRecord, PRHistory
from gym_tracker.models.user import BodyMeasurement, User, UserProfile
from gym_tracker.models.workout import (
    ExerciseSet,
    SessionExercise,
    SessionExerciseGroup,
    SessionSection,
    WorkoutSession,
)

__all__ = [
    "BodyMeasurement",
    "Exercise",
    "ExerciseAlias",
    "ExerciseSet",
    "ExerciseType",
    "ExperienceLevel",
    "GroupType",
    "PersonalRecord",
    "PRHistory",
    "Program",
    "ProgramDay",
    "ProgramDayExercise",
    "ProgramExerciseGroup",
    "ProgramSection",
    "ProgramVersion",
    "RecordType",
    "RepType",
    "SessionExercise",
    "SessionExerciseGroup",
    "SessionSection",
    "SetType",
    "Sex",
    "Units",
    "User",
    "UserProfile",
    "WorkoutSession",
]
