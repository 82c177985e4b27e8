"""Request schemas for logging, session and edit tools."""
import datetime
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from gym_tracker.models.enums import ExerciseType, RepType, SetType
from gym_tracker.schemas.common import IsoDate, StringList, parse_json_value, require_name


def _validate_reps(value: int | list[int]) -> int | list[int]:
    if isinstance(value, list):
        if not value:
            raise ValueError("reps list must not be empty")
        if any(r < 1 for r in value):
            raise ValueError("every reps value must be >= 1")
    elif value < 1:
        raise ValueError("reps must be >= 1")
    return value


class ExerciseEntry(BaseModel):
    """One exercise to log: a number of sets sharing weight/type, with per-set reps and notes."""

    model_config = ConfigDict(use_enum_values=True)

    exercise: str = Field(min_length=1, max_length=200)
    sets: int = Field(default=1, ge=1, le=100)
    reps: int | list[int]
    weight: float | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)
    set_type: SetType = SetType.WORKING
    notes: str | None = None
    rest_seconds: int | None = Field(default=None, ge=0)
    group_id: int | None = None
    section_id: int | None = None
    muscle_group: str | None = None
    equipment: str | None = None
    set_notes: str | list[str] | None = None
    drop_percent: float | None = Field(default=None, ge=1, le=50)
    rep_type: RepType | None = None
    exercise_type: ExerciseType | None = None

    @field_validator("reps")
    @classmethod
    def validate_reps(cls, v):
        return _validate_reps(v)

    @field_validator("exercise")
    @classmethod
    def strip_exercise(cls, v: str) -> str:
        return require_name(v, "exercise name")


class ExerciseOverride(BaseModel):
    exercise: str = Field(min_length=1)
    sets: int | None = Field(default=None, ge=1)
    reps: int | None = Field(default=None, ge=1)
    weight: float | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)

    @field_validator("exercise")
    @classmethod
    def strip_exercise(cls, v: str) -> str:
        return require_name(v, "exercise name")


class LogWorkoutParams(BaseModel):
    """log_workout: session-only, single exercise, bulk, or program-day mode."""

    model_config = ConfigDict(use_enum_values=True)

    # Session control
    program_day: str | None = None
    date: IsoDate | None = None
    tags: StringList | None = None
    notes: str | None = None

    # Program day modifiers
    overrides: Annotated[list[ExerciseOverride] | None, BeforeValidator(parse_json_value)] = None
    skip: StringList | None = None

    # Single exercise mode
    exercise: str | None = None
    sets: int = Field(default=1, ge=1, le=100)
    reps: int | list[int] | None = None
    weight: float | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)
    set_type: SetType = SetType.WORKING
    exercise_notes: str | None = None
    rest_seconds: int | None = Field(default=None, ge=0)
    muscle_group: str | None = None
    equipment: str | None = None
    set_notes: str | list[str] | None = None
    drop_percent: float | None = Field(default=None, ge=1, le=50)
    rep_type: RepType | None = None
    exercise_type: ExerciseType | None = None

    # Bulk mode
    exercises: Annotated[list[ExerciseEntry] | None, BeforeValidator(parse_json_value)] = None

    # Response control
    include_last_workout: bool = True
    minimal_response: bool = False

    @field_validator("reps")
    @classmethod
    def validate_reps(cls, v):
        if v is None:
            return v
        return _validate_reps(v)

    @field_validator("exercise", "program_day")
    @classmethod
    def strip_names(cls, v: str | None, info: ValidationInfo) -> str | None:
        return require_name(v, info.field_name)

    @model_validator(mode="after")
    def require_reps_for_single_exercise(self):
        if self.exercise and not self.exercises and self.reps is None:
            raise ValueError("reps required when logging an exercise")
        return self

    def single_entry(self) -> ExerciseEntry:
        return ExerciseEntry(
            exercise=self.exercise,
            sets=self.sets,
            reps=self.reps,
            weight=self.weight,
            rpe=self.rpe,
            set_type=self.set_type,
            notes=self.exercise_notes,
            rest_seconds=self.rest_seconds,
            muscle_group=self.muscle_group,
            equipment=self.equipment,
            set_notes=self.set_notes,
            drop_percent=self.drop_percent,
            rep_type=self.rep_type,
            exercise_type=self.exercise_type,
        )


class StartSessionParams(BaseModel):
    program_day: str | None = None
    notes: str | None = None
    date: IsoDate | None = None
    tags: StringList | None = None


class EndSessionParams(BaseModel):
    notes: str | None = None


class ValidateSessionParams(BaseModel):
    session_id: int | None = None


class SetUpdates(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    reps: int | None = Field(default=None, ge=1)
    weight: float | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)
    set_type: SetType | None = None
    notes: str | None = None


class EditEntry(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    exercise: str = Field(min_length=1)
    action: Literal["update", "delete"] | None = None
    set_numbers: list[int] | None = None
    set_ids: list[int] | None = None
    set_type_filter: SetType | None = None
    updates: SetUpdates | None = None

    @field_validator("exercise")
    @classmethod
    def strip_exercise(cls, v: str) -> str:
        return require_name(v, "exercise name")


class EditLogParams(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    exercise: str | None = None
    session: str = "today"
    action: Literal["update", "delete"] | None = None
    updates: Annotated[SetUpdates | None, BeforeValidator(parse_json_value)] = None
    set_numbers: Annotated[list[int] | None, BeforeValidator(parse_json_value)] = None
    set_ids: Annotated[list[int] | None, BeforeValidator(parse_json_value)] = None
    set_type_filter: SetType | None = None
    bulk: Annotated[list[EditEntry] | None, BeforeValidator(parse_json_value)] = None

    @field_validator("exercise")
    @classmethod
    def strip_exercise(cls, v: str | None) -> str | None:
        return require_name(v, "exercise name")

    @field_validator("session")
    @classmethod
    def validate_session(cls, v: str) -> str:
        v = v.strip().lower()
        if v in ("today", "last"):
            return v
        try:
            datetime.date.fromisoformat(v)
        except ValueError:
            raise ValueError("session must be 'today', 'last' or a YYYY-MM-DD date")
        return v

    @model_validator(mode="after")
    def require_single_mode_fields(self):
        if self.bulk:
            return self
        if not self.exercise:
            raise ValueError("exercise is required for single mode")
        if not self.action:
            raise ValueError("action is required for single mode")
        return self
