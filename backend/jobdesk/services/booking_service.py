"""Public booking and the owner's confirm / decline workflow."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from jobdesk.errors import ApiError, ConflictError, NotFoundError
from jobdesk.models import Contact, Job, Service, Tenant, User
from jobdesk.schemas.job import EditScope, JobStatus
from jobdesk.schemas.service import BookingRequest, BookingSettings, ServiceAvailability
from jobdesk.services import job_service, workflow
from jobdesk.services.availability_service import (
    BLOCKING_STATUSES,
    advance_days,
    busy_intervals,
    compute_availability,
    count_overlapping,
    validate_slot,
)
from jobdesk.services.notification_service import BookingNotice, build_notice
from jobdesk.services.recurrence_service import default_horizon, expand_recurrence
from jobdesk.utils.timeutils import now_iso, to_iso, to_utc

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    job: Job
    occurrence_count: int
    pending: bool
    notice: BookingNotice


def service_config(service: Service) -> tuple[ServiceAvailability, BookingSettings]:
    availability = ServiceAvailability(**(service.availability or {}))
    booking_settings = BookingSettings(**(service.booking_settings or {}))
    return availability, booking_settings


def get_bookable_service(db: Session, service_id: str) -> Service:
    """Resolve a service by its globally unique id; its tenant owns the booking."""
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise NotFoundError("Service not found")
    if not service.is_active:
        raise ApiError("Service is not available for booking", 400)
    return service


def load_busy(db: Session, service: Service, start: datetime | None = None, end: datetime | None = None):
    query = db.query(Job).filter(
        Job.service_id == service.id,
        Job.status.in_(BLOCKING_STATUSES),
        Job.to_be_scheduled.is_(False),
        Job.archived_at.is_(None),
        Job.deleted_at.is_(None),
    )
    # A job can overlap the window while starting a day before it
    if start is not None:
        query = query.filter(Job.end_time > to_iso(start - timedelta(days=1)))
    if end is not None:
        query = query.filter(Job.start_time < to_iso(end + timedelta(days=1)))
    return busy_intervals(query.all())


def get_availability(db: Session, service_id: str, now: datetime,
                     start: datetime | None = None, end: datetime | None = None) -> list[dict]:
    service = get_bookable_service(db, service_id)
    availability, booking_settings = service_config(service)
    if not availability.working_hours:
        raise ApiError("Service has no availability configured", 400)

    range_start = to_utc(start) if start else now
    if end:
        range_end = to_utc(end)
    else:
        range_end = now + timedelta(days=advance_days(availability))
    if range_end <= range_start:
        raise ApiError("end must be after start", 400)

    busy = load_busy(db, service, range_start, range_end)
    return compute_availability(
        service.duration, availability, booking_settings, busy, range_start, range_end, now,
    )


def _upsert_contact(db: Session, tenant_id: str, req: BookingRequest) -> Contact:
    data = req.contact
    now = now_iso()
    contact = None
    if data.id:
        contact = db.query(Contact).filter(Contact.id == data.id, Contact.tenant_id == tenant_id).first()
        if not contact:
            raise NotFoundError("Contact not found")
    elif data.email:
        contact = (
            db.query(Contact)
            .filter(Contact.tenant_id == tenant_id, Contact.email == data.email)
            .first()
        )

    if contact:
        for key in ("phone", "company", "address"):
            value = getattr(data, key)
            if value and not getattr(contact, key):
                setattr(contact, key, value)
        contact.updated_at = now
        return contact

    if not data.name or not data.name.strip():
        raise ApiError("Contact name is required for new contacts", 400)
    first_name, _, last_name = data.name.strip().partition(" ")
    contact = Contact(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        first_name=first_name,
        last_name=last_name.strip(),
        email=data.email,
        phone=data.phone,
        company=data.company,
        address=data.address,
        notes=data.notes,
        notification_preference="both",
        created_at=now,
        updated_at=now,
    )
    db.add(contact)
    logger.info("Created contact %s from public booking", contact.id)
    return contact


def _owner_emails(db: Session, tenant_id: str) -> list[str]:
    rows = db.query(User.email).filter(User.tenant_id == tenant_id, User.role == "owner").all()
    return [row.email for row in rows]


def _company_name(db: Session, tenant_id: str) -> str:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    return tenant.name if tenant else "JobDesk"


def book_slot(db: Session, service_id: str, req: BookingRequest, now: datetime) -> BookingResult:
    """Validate the requested slot and create the booking. Commits."""
    service = get_bookable_service(db, service_id)
    availability, booking_settings = service_config(service)
    if not availability.working_hours:
        raise ApiError("Service has no availability configured", 400)

    start = to_utc(req.start_time)
    end = validate_slot(service.duration, availability, start, now)
    capacity = booking_settings.max_bookings_per_slot

    if req.recurrence:
        try:
            occurrences = expand_recurrence(req.recurrence, start, end, horizon=default_horizon(start))
        except ValueError as exc:
            raise ApiError(str(exc), 400)
        if not occurrences:
            raise ApiError("Recurrence produced no occurrences", 400)
    else:
        occurrences = [(start, end)]

    busy = load_busy(db, service, occurrences[0][0], occurrences[-1][1])
    conflicts = [
        {"start": to_iso(occ_start), "end": to_iso(occ_end)}
        for occ_start, occ_end in occurrences
        if count_overlapping(busy, occ_start, occ_end) >= capacity
    ]
    if conflicts:
        message = "Slot is no longer available" if len(occurrences) == 1 else "Some occurrences are no longer available"
        raise ConflictError(message, extra={"conflicts": conflicts})

    contact = _upsert_contact(db, service.tenant_id, req)
    pending = booking_settings.require_confirmation
    status = JobStatus.PENDING_CONFIRMATION.value if pending else JobStatus.SCHEDULED.value
    fields = {
        "title": service.name,
        "contact_id": contact.id,
        "service_id": service.id,
        "location": req.location or contact.address,
        "price": service.price,
        "notes": req.notes,
    }

    if req.recurrence:
        jobs = job_service.create_occurrences(
            db, service.tenant_id, fields, req.recurrence, start, end, status, event_notes="Booked online",
        )
    else:
        jobs = [job_service.new_job(service.tenant_id, fields, start, end, status)]
        db.add(jobs[0])
        workflow.record_event(db, jobs[0], notes="Booked online", occurred_at=jobs[0].created_at)

    db.commit()
    job = jobs[0]
    db.refresh(job)
    logger.info(
        "Booked %s for contact %s at %s (%s, %d occurrences)",
        service.id, contact.id, job.start_time, status, len(jobs),
    )
    notice = build_notice(
        job,
        _company_name(db, service.tenant_id),
        owner_emails=_owner_emails(db, service.tenant_id),
        occurrence_count=len(jobs),
    )
    return BookingResult(job=job, occurrence_count=len(jobs), pending=pending, notice=notice)


def confirm_job(db: Session, tenant_id: str, job_id: str, scope: EditScope = EditScope.THIS) -> tuple[Job, list[Job], BookingNotice]:
    """Move a pending booking (and optionally its pending siblings) to scheduled. Commits."""
    job = job_service.get_job(db, tenant_id, job_id)
    if job.status != JobStatus.PENDING_CONFIRMATION.value:
        raise ApiError("Only jobs pending confirmation can be confirmed", 400)

    confirmed = [
        occ for occ in job_service.scoped_jobs(db, job, scope)
        if occ.status == JobStatus.PENDING_CONFIRMATION.value
    ]
    for occ in confirmed:
        workflow.transition(db, occ, JobStatus.SCHEDULED, notes="Booking confirmed")
    db.commit()
    db.refresh(job)
    logger.info("Confirmed %d jobs starting with %s", len(confirmed), job.id)
    notice = build_notice(job, _company_name(db, tenant_id), occurrence_count=len(confirmed))
    return job, confirmed, notice


def decline_job(db: Session, tenant_id: str, job_id: str, reason: str | None = None) -> tuple[Job, BookingNotice]:
    job = job_service.get_job(db, tenant_id, job_id)
    if job.status != JobStatus.PENDING_CONFIRMATION.value:
        raise ApiError("Only jobs pending confirmation can be declined", 400)

    note = f"Declined: {reason}" if reason else "Declined"
    job.notes = f"{job.notes}\n{note}" if job.notes else note
    workflow.transition(db, job, JobStatus.CANCELLED, notes=note)
    db.commit()
    db.refresh(job)
    logger.info("Declined job %s", job.id)
    notice = build_notice(job, _company_name(db, tenant_id), reason=reason)
    return job, notice
