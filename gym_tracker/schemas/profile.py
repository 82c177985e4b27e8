"""User profile document.

The profile is stored as one JSONB document. Known fields are typed here;
anything else the agent wants to remember goes into the explicit `extra` map
instead of being accepted as untyped top-level keys.
"""
import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, JsonValue, field_validator, model_validator

from gym_tracker.models.enums import ExperienceLevel, Sex, Units
from gym_tracker.schemas.common import parse_json_value

# Entries meaning "no injuries", in the languages we support
NONE_PATTERN = re.compile(
    r"^(nada|ninguna?|none|n/a|na|no|no tengo|sin lesi[oó]n(es)?|nothing|-)$",
    re.IGNORECASE,
)

REQUIRED_FOR_COMPLETE = ("name", "experience_level")


def normalize_injuries(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return value
    cleaned = []
    for item in value:
        if not isinstance(item, str):
            continue
        item = item.strip()
        if item and not NONE_PATTERN.match(item):
            cleaned.append(item)
    return cleaned


class ProfileData(BaseModel):
    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    name: str | None = Field(default=None, max_length=100)
    age: int | None = Field(default=None, ge=13, le=120)
    sex: Sex | None = None
    weight_kg: float | None = Field(default=None, gt=0, le=500)
    height_cm: float | None = Field(default=None, gt=0, le=300)
    goals: list[Annotated[str, Field(max_length=50)]] | None = Field(default=None, max_length=10)
    experience_level: ExperienceLevel | None = None
    training_days_per_week: int | None = Field(default=None, ge=1, le=7)
    available_days: list[str] | None = Field(default=None, max_length=7)
    injuries: list[Annotated[str, Field(max_length=100)]] | None = Field(default=None, max_length=20)
    preferred_units: Units | None = None
    gym: str | None = Field(default=None, max_length=100)
    supplements: str | None = Field(default=None, max_length=500)
    requires_validation: bool | None = None
    timezone: str | None = None
    language: Literal["en", "es"] | None = None
    extra: dict[str, JsonValue] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_extension_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        core = {key: value for key, value in data.items() if key in known}
        extra = dict(core.pop("extra", None) or {})
        for key, value in data.items():
            if key not in known:
                extra[key] = value
        if extra:
            core["extra"] = extra
        return core

    @field_validator("injuries", mode="before")
    @classmethod
    def drop_none_injuries(cls, v):
        return normalize_injuries(v)

    def merge(self, update: "ProfileData") -> "ProfileData":
        """Fields present in `update` win; explicit nulls clear; extra maps are merged."""
        merged = self.model_copy(deep=True)
        for field in update.model_fields_set - {"extra"}:
            setattr(merged, field, getattr(update, field))
        merged.extra = {**self.extra, **update.extra}
        return merged

    def to_document(self) -> dict:
        doc = self.model_dump(exclude_none=True, exclude={"extra"})
        if self.extra:
            doc["extra"] = dict(self.extra)
        return doc


def is_profile_complete(data: dict) -> bool:
    return all(data.get(field) not in (None, "") for field in REQUIRED_FOR_COMPLETE)


class ManageProfileParams(BaseModel):
    action: Literal["get", "update"]
    data: Annotated[dict[str, Any] | None, BeforeValidator(parse_json_value)] = None

    @model_validator(mode="after")
    def require_data(self):
        if self.action == "update" and not self.data:
            raise ValueError("No data provided")
        return self
