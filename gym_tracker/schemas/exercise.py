from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from gym_tracker.models.enums import ExerciseType, RepType
from gym_tracker.schemas.common import StringList, parse_json_value


class ManageExercisesParams(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    action: Literal["list", "search", "add", "update", "delete"]
    name: str | None = Field(default=None, max_length=200)
    query: str | None = None
    new_name: str | None = Field(default=None, max_length=200)
    muscle_group: str | None = None
    equipment: str | None = None
    rep_type: RepType | None = None
    exercise_type: ExerciseType | None = None
    description: str | None = None
    aliases: StringList | None = None
    names: Annotated[dict[str, str] | None, BeforeValidator(parse_json_value)] = None
    limit: int = Field(default=50, ge=1, le=200)

    @model_validator(mode="after")
    def require_name(self):
        if self.action in ("add", "update", "delete") and not (self.name and self.name.strip()):
            raise ValueError(f"name is required for {self.action}")
        return self
