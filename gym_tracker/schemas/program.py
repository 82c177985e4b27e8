"""Request schemas for manage_program."""
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

from gym_tracker.models.enums import GroupType
from gym_tracker.schemas.common import StringList, parse_json_value, require_name


class GroupInput(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    group_type: GroupType
    label: str | None = None
    notes: str | None = None
    rest_seconds: int | None = Field(default=None, ge=0)


class SectionInput(BaseModel):
    label: str = Field(min_length=1, max_length=100)
    notes: str | None = None


class DayExerciseInput(BaseModel):
    exercise: str = Field(min_length=1, max_length=200)
    sets: int = Field(default=3, ge=1)
    reps: int = Field(default=10, ge=1)
    weight: float | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)
    reps_per_set: list[int] | None = None
    weight_per_set: list[float] | None = None
    rest_seconds: int | None = Field(default=None, ge=0)
    notes: str | None = None
    # Positions in the day's `groups` / `sections` lists
    group: int | None = Field(default=None, ge=0)
    section: int | None = Field(default=None, ge=0)

    @field_validator("exercise")
    @classmethod
    def strip_exercise(cls, v: str) -> str:
        return require_name(v, "exercise name")


class DayInput(BaseModel):
    day_label: str = Field(min_length=1, max_length=100)
    weekdays: list[int] | None = None
    exercises: list[DayExerciseInput] = Field(default_factory=list)
    groups: list[GroupInput] = Field(default_factory=list)
    sections: list[SectionInput] = Field(default_factory=list)

    @field_validator("day_label")
    @classmethod
    def strip_label(cls, v: str) -> str:
        return require_name(v, "day_label")

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, v: list[int] | None) -> list[int] | None:
        if v is None:
            return v
        for day in v:
            if not 1 <= day <= 7:
                raise ValueError(f"Invalid weekday {day}: use ISO numbering 1=Mon..7=Sun")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_references(self):
        for ex in self.exercises:
            if ex.group is not None and ex.group >= len(self.groups):
                raise ValueError(f"exercise '{ex.exercise}' references missing group {ex.group}")
            if ex.section is not None and ex.section >= len(self.sections):
                raise ValueError(f"exercise '{ex.exercise}' references missing section {ex.section}")
        return self


class DayExercisePatch(BaseModel):
    sets: int | None = Field(default=None, ge=1)
    reps: int | None = Field(default=None, ge=1)
    weight: float | None = Field(default=None, ge=0)
    rpe: float | None = Field(default=None, ge=1, le=10)
    reps_per_set: list[int] | None = None
    weight_per_set: list[float] | None = None
    rest_seconds: int | None = Field(default=None, ge=0)
    notes: str | None = None

    def as_column_values(self) -> dict:
        columns = {
            "sets": "target_sets",
            "reps": "target_reps",
            "weight": "target_weight",
            "rpe": "target_rpe",
            "reps_per_set": "target_reps_per_set",
            "weight_per_set": "target_weight_per_set",
            "rest_seconds": "rest_seconds",
            "notes": "notes",
        }
        return {columns[k]: v for k, v in self.model_dump(exclude_unset=True).items()}


ProgramAction = Literal[
    "list",
    "get",
    "create",
    "update",
    "patch",
    "add_day",
    "remove_day",
    "activate",
    "delete",
    "delete_bulk",
    "history",
]


class ManageProgramParams(BaseModel):
    action: ProgramAction
    name: str | None = None
    new_name: str | None = None
    description: str | None = None
    days: Annotated[list[DayInput] | None, BeforeValidator(parse_json_value)] = None
    change_description: str | None = None
    hard_delete: bool = False
    names: StringList | None = None
    include_exercises: bool = True

    # patch / add_day / remove_day
    day: str | None = None
    exercise: str | None = None
    changes: Annotated[DayExercisePatch | None, BeforeValidator(parse_json_value)] = None
    new_day: Annotated[DayInput | None, BeforeValidator(parse_json_value)] = None

    @field_validator("day", "exercise")
    @classmethod
    def strip_names(cls, v: str | None, info: ValidationInfo) -> str | None:
        return require_name(v, info.field_name)

    @model_validator(mode="after")
    def validate_action_fields(self):
        if self.action in ("create", "activate", "delete") and not self.name:
            raise ValueError(f"name is required for {self.action}")
        if self.action == "create" and not self.days:
            raise ValueError("days are required for create")
        if self.action == "delete_bulk" and not self.names:
            raise ValueError("names array required for delete_bulk")
        if self.action == "patch" and not (self.day and self.exercise and self.changes):
            raise ValueError("patch requires day, exercise and changes")
        if self.action == "add_day" and not self.new_day:
            raise ValueError("add_day requires new_day")
        if self.action == "remove_day" and not self.day:
            raise ValueError("remove_day requires day")
        return self
