from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from jobdesk.schemas.recurrence import RecurrenceRule


class JobStatus(str, Enum):
    PENDING_CONFIRMATION = "pending-confirmation"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EditScope(str, Enum):
    THIS = "this"
    FUTURE = "future"
    ALL = "all"


class BreakPeriod(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: str | None = None


class JobAssignment(BaseModel):
    user_id: str
    role_id: str | None = None
    role: str = "Team Member"
    pay_type: Literal["job", "hourly"] = "job"
    price: float | None = None
    hourly_rate: float | None = None


def normalize_assigned_to(value):
    """Accept a bare user id, a list of user ids, or a list of assignment objects."""
    if value is None:
        return None
    if isinstance(value, str):
        value = [value] if value.strip() else []
    normalized = []
    for item in value:
        if isinstance(item, str):
            if item.strip():
                normalized.append({"user_id": item.strip()})
        elif item:
            normalized.append(item)
    return normalized or None


class JobCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    contact_id: str
    service_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    to_be_scheduled: bool = False
    status: JobStatus = JobStatus.SCHEDULED
    location: str | None = None
    price: float | None = None
    notes: str | None = None
    breaks: list[BreakPeriod] | None = None
    assigned_to: list[JobAssignment] | None = None
    recurrence: RecurrenceRule | None = None

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assignments(cls, value):
        return normalize_assigned_to(value)


class JobUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    contact_id: str | None = None
    service_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    to_be_scheduled: bool | None = None
    status: JobStatus | None = None
    location: str | None = None
    price: float | None = None
    notes: str | None = None
    breaks: list[BreakPeriod] | None = None
    assigned_to: list[JobAssignment] | None = None
    recurrence: RecurrenceRule | None = None
    scope: EditScope = EditScope.THIS

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assignments(cls, value):
        return normalize_assigned_to(value)


class JobScheduleRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class JobConfirmRequest(BaseModel):
    scope: EditScope = EditScope.THIS


class JobDeclineRequest(BaseModel):
    reason: str | None = None


class JobResponse(BaseModel):
    id: str
    title: str
    description: str | None
    contact_id: str
    contact_name: str | None = None
    service_id: str | None
    service_name: str | None = None
    recurrence_id: str | None
    start_time: str | None
    end_time: str | None
    to_be_scheduled: bool
    status: str
    location: str | None
    price: float | None
    notes: str | None
    breaks: list[dict] = []
    assigned_to: list[dict] = []
    created_by_id: str | None = None
    archived_at: str | None = None
    created_at: str
    updated_at: str
    occurrence_count: int | None = None


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    per_page: int


class BulkResult(BaseModel):
    affected: int
    job_ids: list[str]
