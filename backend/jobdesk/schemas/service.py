from datetime import datetime

from pydantic import BaseModel, Field

from jobdesk.schemas.job import JobResponse
from jobdesk.schemas.recurrence import RecurrenceRule

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class WorkingHours(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Sunday
    start_time: str = Field(..., pattern=_HHMM)
    end_time: str = Field(..., pattern=_HHMM)
    is_working: bool = True


class ServiceAvailability(BaseModel):
    working_hours: list[WorkingHours] = []
    timezone_offset: float | None = None  # hours from UTC
    buffer_time: int = Field(0, ge=0)  # minutes between slots
    advance_booking_days: int | None = Field(None, ge=1)
    same_day_booking: bool = False


class BookingSettings(BaseModel):
    require_confirmation: bool = False
    max_bookings_per_slot: int = Field(1, ge=1)


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    duration: int = Field(..., gt=0)
    price: float | None = None
    is_active: bool = True
    availability: ServiceAvailability | None = None
    booking_settings: BookingSettings | None = None


class ServiceUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    duration: int | None = Field(None, gt=0)
    price: float | None = None
    is_active: bool | None = None
    availability: ServiceAvailability | None = None
    booking_settings: BookingSettings | None = None


class ServiceResponse(BaseModel):
    id: str
    name: str
    description: str | None
    duration: int
    price: float | None
    is_active: bool
    availability: ServiceAvailability | None
    booking_settings: BookingSettings | None
    created_at: str
    updated_at: str


class BookingLinkResponse(BaseModel):
    service_id: str
    service_name: str
    public_link: str
    embed_code: str


class Slot(BaseModel):
    start: str
    end: str


class DaySlots(BaseModel):
    date: str
    slots: list[Slot]


class AvailabilityResponse(BaseModel):
    service_id: str
    slots: list[DaySlots]


class BookingContact(BaseModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    address: str | None = None
    notes: str | None = None


class BookingRequest(BaseModel):
    start_time: datetime
    contact: BookingContact
    location: str | None = None
    notes: str | None = None
    recurrence: RecurrenceRule | None = None


class BookingResponse(BaseModel):
    job: JobResponse
    status: str
    occurrence_count: int
