"""Open-slot computation for public booking.

Working hours are stored in the business's local time; ``timezone_offset``
(hours from UTC) converts them. All datetimes crossing this module's boundary
are timezone-aware UTC.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone

from jobdesk.config import settings
from jobdesk.errors import ApiError
from jobdesk.schemas.job import JobStatus
from jobdesk.schemas.service import BookingSettings, ServiceAvailability, WorkingHours
from jobdesk.services.recurrence_service import sunday_weekday
from jobdesk.utils.timeutils import overlaps, parse_iso, to_iso, to_utc

logger = logging.getLogger(__name__)

# Statuses that occupy a slot
BLOCKING_STATUSES = (
    JobStatus.PENDING_CONFIRMATION.value,
    JobStatus.SCHEDULED.value,
    JobStatus.IN_PROGRESS.value,
)

Interval = tuple[datetime, datetime]


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _offset(availability: ServiceAvailability) -> timedelta:
    hours = availability.timezone_offset
    if hours is None:
        hours = settings.default_timezone_offset
    return timedelta(hours=hours)


def advance_days(availability: ServiceAvailability) -> int:
    return availability.advance_booking_days or settings.default_advance_booking_days


def _working_hours_for(availability: ServiceAvailability, local_day: date) -> WorkingHours | None:
    dow = sunday_weekday(datetime.combine(local_day, time()))
    for wh in availability.working_hours:
        if wh.day_of_week == dow and wh.is_working:
            return wh
    return None


def busy_intervals(jobs) -> list[Interval]:
    """Booked intervals of ``jobs``, plus the break periods they carry.

    Occurrences of a series share one ``breaks`` list, so each distinct break
    is counted once.
    """
    intervals: list[Interval] = []
    breaks: set[Interval] = set()
    for job in jobs:
        if job.to_be_scheduled or not job.start_time or not job.end_time:
            continue
        intervals.append((parse_iso(job.start_time), parse_iso(job.end_time)))
        for b in job.breaks or []:
            breaks.add((parse_iso(b["start_time"]), parse_iso(b["end_time"])))
    return intervals + sorted(breaks)


def count_overlapping(busy: list[Interval], start: datetime, end: datetime) -> int:
    return sum(1 for b_start, b_end in busy if overlaps(start, end, b_start, b_end))


def compute_availability(
    duration: int,
    availability: ServiceAvailability,
    booking_settings: BookingSettings,
    busy: list[Interval],
    range_start: datetime,
    range_end: datetime,
    now: datetime,
) -> list[dict]:
    if not availability.working_hours:
        raise ApiError("Service has no availability configured", 400)

    offset = _offset(availability)
    advance = timedelta(days=advance_days(availability))
    capacity = booking_settings.max_bookings_per_slot
    step = timedelta(minutes=duration + availability.buffer_time)
    length = timedelta(minutes=duration)
    range_start, range_end, now = to_utc(range_start), to_utc(range_end), to_utc(now)
    today_local = (now + offset).date()

    days: list[dict] = []
    local_day = (range_start + offset).date()
    last_day = (range_end + offset).date()
    while local_day <= last_day:
        wh = _working_hours_for(availability, local_day)
        if wh is not None:
            day_slots = []
            window_end = _minutes(wh.end_time)
            local_midnight = datetime.combine(local_day, time(), tzinfo=timezone.utc)
            slot_local = local_midnight + timedelta(minutes=_minutes(wh.start_time))
            while slot_local + length <= local_midnight + timedelta(minutes=window_end):
                slot_start = slot_local - offset
                slot_end = slot_start + length
                slot_local += step

                if slot_start < now or slot_start < range_start or slot_start > range_end:
                    continue
                if not availability.same_day_booking and local_day == today_local:
                    continue
                if slot_start - now > advance:
                    continue
                if count_overlapping(busy, slot_start, slot_end) >= capacity:
                    continue
                day_slots.append({
                    "start": to_iso(slot_start),
                    "end": to_iso(slot_end),
                })
            if day_slots:
                days.append({"date": local_day.isoformat(), "slots": day_slots})
        local_day += timedelta(days=1)

    logger.info("Computed availability: %d days with open slots", len(days))
    return days


def validate_slot(duration: int, availability: ServiceAvailability, start: datetime, now: datetime) -> datetime:
    """Check that ``start`` is a bookable slot start; returns the slot end."""
    start, now = to_utc(start), to_utc(now)
    end = start + timedelta(minutes=duration)
    if start < now:
        raise ApiError("Cannot book slots in the past", 400)

    offset = _offset(availability)
    local_start = start + offset
    wh = _working_hours_for(availability, local_start.date())
    if wh is None:
        raise ApiError("Service is not available on this day", 400)

    start_minutes = local_start.hour * 60 + local_start.minute
    if start_minutes < _minutes(wh.start_time) or start_minutes + duration > _minutes(wh.end_time):
        raise ApiError("Slot is outside working hours", 400)

    if not availability.same_day_booking and local_start.date() == (now + offset).date():
        raise ApiError("Same-day booking is not allowed", 400)
    if start - now > timedelta(days=advance_days(availability)):
        raise ApiError("Booking is too far in advance", 400)
    return end
