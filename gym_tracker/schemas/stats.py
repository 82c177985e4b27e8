from typing import Literal

from pydantic import BaseModel, Field, model_validator

from gym_tracker.schemas.common import IsoDate


Period = Literal["week", "month", "3months", "6months", "year", "all"]


class GetStatsParams(BaseModel):
    exercise: str = Field(min_length=1)
    period: Period = "3months"


class TodayPlanParams(BaseModel):
    program_day: str | None = None
    include_last_workout: bool = True


class ManageBodyMeasurementsParams(BaseModel):
    action: Literal["log", "latest", "history"]
    measurement_type: str | None = Field(default=None, max_length=50)
    value: float | None = Field(default=None, gt=0)
    notes: str | None = None
    measured_at: IsoDate | None = None
    period: Period = "3months"

    @model_validator(mode="after")
    def validate_action_fields(self):
        if self.action == "log" and (not self.measurement_type or self.value is None):
            raise ValueError("measurement_type and value are required for log")
        if self.action == "history" and not self.measurement_type:
            raise ValueError("measurement_type is required for history")
        if self.measurement_type:
            self.measurement_type = self.measurement_type.strip().lower()
        return self
