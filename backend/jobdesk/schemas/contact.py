from typing import Literal

from pydantic import BaseModel, Field

NotificationPreference = Literal["email", "sms", "both", "none"]


class ContactCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    notes: str | None = None
    notification_preference: NotificationPreference = "both"


class ContactUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    notes: str | None = None
    notification_preference: NotificationPreference | None = None


class ContactResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    company: str | None
    address: str | None
    notes: str | None
    notification_preference: str
    created_at: str
    updated_at: str
    job_count: int = 0
