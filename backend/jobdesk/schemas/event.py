from pydantic import BaseModel

from jobdesk.schemas.job import JobStatus


class EventCreate(BaseModel):
    event_type: JobStatus
    notes: str | None = None


class EventResponse(BaseModel):
    id: str
    job_id: str
    event_type: str
    notes: str | None
    occurred_at: str
