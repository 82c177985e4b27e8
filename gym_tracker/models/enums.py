from enum import Enum


class RepType(str, Enum):
    REPS = "reps"
    SECONDS = "seconds"
    METERS = "meters"
    CALORIES = "calories"


class ExerciseType(str, Enum):
    """Exercise category. Only STRENGTH participates in personal records."""
    STRENGTH = "strength"
    MOBILITY = "mobility"
    CARDIO = "cardio"
    WARMUP = "warmup"


class SetType(str, Enum):
    WARMUP = "warmup"
    WORKING = "working"
    DROP = "drop"
    FAILURE = "failure"


class GroupType(str, Enum):
    SUPERSET = "superset"
    PAIRED = "paired"
    CIRCUIT = "circuit"


class RecordType(str, Enum):
    MAX_WEIGHT = "max_weight"
    ESTIMATED_1RM = "estimated_1rm"
    # Bucketed per weight: "max_reps_at_<weight>"
    MAX_REPS_AT = "max_reps_at_"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Units(str, Enum):
    KG = "kg"
    LB = "lb"
