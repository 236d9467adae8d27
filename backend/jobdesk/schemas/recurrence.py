from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class RecurrenceRule(BaseModel):
    frequency: Frequency
    interval: int = Field(1, ge=1)
    count: int | None = Field(None, ge=1)
    until_date: datetime | None = None
    # 0 = Sunday ... 6 = Saturday
    days_of_week: list[int] | None = None

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        if any(d < 0 or d > 6 for d in value):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))


class RecurrenceResponse(BaseModel):
    id: str
    frequency: str
    interval: int
    count: int | None
    until_date: str | None
    days_of_week: list[int] | None
    start_time: str
    end_time: str
