"""Job record store.

Owns every write to the ``jobs`` table: one-off and recurring creation, edits
scoped to a slice of a recurrence group, calendar scheduling and archival.
``new_job`` and ``create_occurrences`` only add to the session; the other
public functions commit once, so a bulk edit is all-or-nothing.
"""
import logging
import uuid
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobdesk.errors import ApiError, NotFoundError
from jobdesk.models import Contact, Job, JobRecurrence, Service, User
from jobdesk.schemas.job import EditScope, JobCreate, JobResponse, JobStatus, JobUpdate
from jobdesk.schemas.recurrence import RecurrenceRule
from jobdesk.services import workflow
from jobdesk.services.recurrence_service import default_horizon, expand_recurrence, skip_breaks
from jobdesk.utils.timeutils import now_iso, parse_iso, to_iso, to_utc

logger = logging.getLogger(__name__)

# Columns a scoped edit copies onto every occurrence it touches
GROUP_FIELDS = (
    "title", "description", "contact_id", "service_id",
    "location", "price", "notes", "breaks", "assigned_to",
)


def occurrence_count(db: Session, job: Job) -> int:
    if not job.recurrence_id:
        return 1
    return (
        db.query(func.count(Job.id))
        .filter(Job.recurrence_id == job.recurrence_id, Job.deleted_at.is_(None))
        .scalar()
    )


def job_to_response(job: Job, db: Session | None = None) -> JobResponse:
    return JobResponse(
        id=job.id,
        title=job.title,
        description=job.description,
        contact_id=job.contact_id,
        contact_name=job.contact.full_name if job.contact else None,
        service_id=job.service_id,
        service_name=job.service.name if job.service else None,
        recurrence_id=job.recurrence_id,
        start_time=job.start_time,
        end_time=job.end_time,
        to_be_scheduled=bool(job.to_be_scheduled),
        status=job.status,
        location=job.location,
        price=job.price,
        notes=job.notes,
        breaks=job.breaks or [],
        assigned_to=job.assigned_to or [],
        created_by_id=job.created_by_id,
        archived_at=job.archived_at,
        created_at=job.created_at,
        updated_at=job.updated_at,
        occurrence_count=occurrence_count(db, job) if db is not None else None,
    )


# ---- lookups ----------------------------------------------------------------

def get_job(db: Session, tenant_id: str, job_id: str) -> Job:
    job = (
        db.query(Job)
        .filter(Job.id == job_id, Job.tenant_id == tenant_id, Job.deleted_at.is_(None))
        .first()
    )
    if not job:
        raise NotFoundError("Job not found")
    return job


def get_contact(db: Session, tenant_id: str, contact_id: str) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id, Contact.tenant_id == tenant_id).first()
    if not contact:
        raise NotFoundError("Contact not found")
    return contact


def get_service(db: Session, tenant_id: str, service_id: str) -> Service:
    service = db.query(Service).filter(Service.id == service_id, Service.tenant_id == tenant_id).first()
    if not service:
        raise NotFoundError("Service not found")
    return service


# ---- field normalization ----------------------------------------------------

def _check_times(start: datetime, end: datetime):
    if end <= start:
        raise ApiError("end_time must be after start_time", 400)


def serialize_breaks(breaks: list[dict] | None) -> list[dict] | None:
    if not breaks:
        return None
    periods = []
    for b in breaks:
        start, end = to_utc(b["start_time"]), to_utc(b["end_time"])
        if end <= start:
            raise ApiError("Break end time must be after its start time", 400)
        periods.append({"start_time": to_iso(start), "end_time": to_iso(end), "reason": b.get("reason")})
    return periods


def validate_assignments(db: Session, tenant_id: str, assignments: list[dict] | None) -> list[dict] | None:
    """Every assigned user must belong to the tenant."""
    if not assignments:
        return None
    user_ids = {a["user_id"] for a in assignments}
    found = {
        row.id
        for row in db.query(User.id).filter(User.tenant_id == tenant_id, User.id.in_(user_ids))
    }
    missing = sorted(user_ids - found)
    if missing:
        raise ApiError(f"Assigned users not found: {', '.join(missing)}", 400)
    return assignments


# ---- creation ---------------------------------------------------------------

def new_job(
    tenant_id: str,
    fields: dict,
    start: datetime | None,
    end: datetime | None,
    status: str,
    recurrence_id: str | None = None,
    created_by_id: str | None = None,
) -> Job:
    now = now_iso()
    return Job(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        title=fields["title"],
        description=fields.get("description"),
        contact_id=fields["contact_id"],
        service_id=fields.get("service_id"),
        recurrence_id=recurrence_id,
        start_time=to_iso(start),
        end_time=to_iso(end),
        to_be_scheduled=start is None,
        status=status,
        location=fields.get("location"),
        price=fields.get("price"),
        notes=fields.get("notes"),
        breaks=fields.get("breaks"),
        assigned_to=fields.get("assigned_to"),
        created_by_id=created_by_id,
        created_at=now,
        updated_at=now,
    )


def _expand(rule: RecurrenceRule, start: datetime, end: datetime, breaks: list[dict] | None):
    try:
        occurrences = expand_recurrence(rule, start, end, horizon=default_horizon(start))
    except ValueError as exc:
        raise ApiError(str(exc), 400)
    return skip_breaks(occurrences, breaks)


def _new_recurrence(tenant_id: str, fields: dict, rule: RecurrenceRule, start: datetime, end: datetime) -> JobRecurrence:
    return JobRecurrence(
        id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        contact_id=fields["contact_id"],
        service_id=fields.get("service_id"),
        title=fields["title"],
        frequency=rule.frequency.value,
        interval=rule.interval,
        count=rule.count,
        until_date=to_iso(rule.until_date),
        days_of_week=rule.days_of_week,
        start_time=to_iso(start),
        end_time=to_iso(end),
        created_at=now_iso(),
    )


def create_occurrences(
    db: Session,
    tenant_id: str,
    fields: dict,
    rule: RecurrenceRule,
    start: datetime,
    end: datetime,
    status: str,
    created_by_id: str | None = None,
    event_notes: str | None = None,
) -> list[Job]:
    """Add a recurrence group and one Job row per occurrence to the session."""
    occurrences = _expand(rule, start, end, fields.get("breaks"))
    if not occurrences:
        raise ApiError("Recurrence produced no occurrences", 400)

    recurrence = _new_recurrence(tenant_id, fields, rule, start, end)
    db.add(recurrence)
    jobs = []
    for occ_start, occ_end in occurrences:
        job = new_job(tenant_id, fields, occ_start, occ_end, status, recurrence.id, created_by_id)
        db.add(job)
        workflow.record_event(db, job, notes=event_notes, occurred_at=job.created_at)
        jobs.append(job)

    logger.info("Created recurrence %s with %d occurrences", recurrence.id, len(jobs))
    return jobs


def create_job(db: Session, tenant_id: str, req: JobCreate, created_by_id: str | None = None) -> tuple[Job, int]:
    """Create a one-off, unscheduled or recurring job. Commits."""
    get_contact(db, tenant_id, req.contact_id)
    if req.service_id:
        get_service(db, tenant_id, req.service_id)

    data = req.model_dump()
    fields = {key: data[key] for key in GROUP_FIELDS}
    fields["breaks"] = serialize_breaks(data["breaks"])
    fields["assigned_to"] = validate_assignments(db, tenant_id, data["assigned_to"])

    start = end = None
    if req.to_be_scheduled:
        if req.recurrence:
            raise ApiError("Recurring jobs must have a scheduled time", 400)
    else:
        if req.start_time is None or req.end_time is None:
            raise ApiError("start_time and end_time are required unless the job is to be scheduled", 400)
        start, end = to_utc(req.start_time), to_utc(req.end_time)
        _check_times(start, end)

    if req.recurrence:
        jobs = create_occurrences(
            db, tenant_id, fields, req.recurrence, start, end,
            status=req.status.value, created_by_id=created_by_id, event_notes="Job created",
        )
        db.commit()
        db.refresh(jobs[0])
        return jobs[0], len(jobs)

    job = new_job(tenant_id, fields, start, end, req.status.value, created_by_id=created_by_id)
    db.add(job)
    workflow.record_event(db, job, notes="Job created", occurred_at=job.created_at)
    db.commit()
    db.refresh(job)
    logger.info("Created job %s (%s)", job.id, "unscheduled" if job.to_be_scheduled else job.start_time)
    return job, 1


# ---- scoped edits -----------------------------------------------------------

def scoped_jobs(db: Session, job: Job, scope: EditScope, include_archived: bool = False) -> list[Job]:
    """The occurrences an operation on ``job`` with ``scope`` applies to.

    ``future`` selects the group rows starting at or after ``job``; rows
    before it are never returned.
    """
    if scope == EditScope.THIS or not job.recurrence_id:
        return [job]
    if scope == EditScope.FUTURE and job.start_time is None:
        return [job]

    query = db.query(Job).filter(
        Job.tenant_id == job.tenant_id,
        Job.recurrence_id == job.recurrence_id,
        Job.deleted_at.is_(None),
    )
    if not include_archived:
        query = query.filter(Job.archived_at.is_(None))
    if scope == EditScope.FUTURE:
        query = query.filter(Job.start_time >= job.start_time)

    jobs = query.order_by(Job.start_time.asc()).all()
    if job not in jobs:
        jobs.insert(0, job)
    return jobs


def _shift_times(job: Job, targets: list[Job], start: datetime | None, end: datetime | None):
    if job.start_time is None:
        if start is None or end is None:
            raise ApiError("start_time and end_time are required to schedule a job", 400)
        start, end = to_utc(start), to_utc(end)
        _check_times(start, end)
        job.start_time, job.end_time = to_iso(start), to_iso(end)
        job.to_be_scheduled = False
        return

    old_start, old_end = parse_iso(job.start_time), parse_iso(job.end_time)
    new_start = to_utc(start) if start else old_start
    new_end = to_utc(end) if end else new_start + (old_end - old_start)
    _check_times(new_start, new_end)

    delta = new_start - old_start
    duration = new_end - new_start
    for occ in targets:
        if occ.start_time is None:
            continue
        occ_start = parse_iso(occ.start_time) + delta
        occ.start_time = to_iso(occ_start)
        occ.end_time = to_iso(occ_start + duration)


def _convert_to_recurring(db: Session, job: Job, rule: RecurrenceRule) -> int:
    """Turn a one-off job into the first occurrence of a new group."""
    start, end = parse_iso(job.start_time), parse_iso(job.end_time)
    fields = {key: getattr(job, key) for key in GROUP_FIELDS}
    extra = [occ for occ in _expand(rule, start, end, job.breaks) if occ[0] != start]
    if rule.count:
        extra = extra[: rule.count - 1]

    recurrence = _new_recurrence(job.tenant_id, fields, rule, start, end)
    db.add(recurrence)
    job.recurrence_id = recurrence.id

    status = job.status
    if JobStatus(status) not in (JobStatus.PENDING_CONFIRMATION, JobStatus.SCHEDULED):
        status = JobStatus.SCHEDULED.value
    for occ_start, occ_end in extra:
        occ = new_job(job.tenant_id, fields, occ_start, occ_end, status, recurrence.id, job.created_by_id)
        db.add(occ)
        workflow.record_event(db, occ, notes="Added to recurring series", occurred_at=occ.created_at)

    logger.info("Converted job %s into recurrence %s (%d occurrences)", job.id, recurrence.id, len(extra) + 1)
    return len(extra) + 1


def update_job(db: Session, tenant_id: str, job_id: str, req: JobUpdate) -> tuple[Job, list[Job]]:
    """Apply ``req`` to the occurrences selected by ``req.scope``. Commits."""
    job = get_job(db, tenant_id, job_id)
    data = req.model_dump(exclude_unset=True)
    for key in ("scope", "recurrence", "status", "to_be_scheduled", "start_time", "end_time"):
        data.pop(key, None)
    for key in ("title", "contact_id"):
        if key in data and not data[key]:
            data.pop(key)

    if data.get("contact_id"):
        get_contact(db, tenant_id, data["contact_id"])
    if data.get("service_id"):
        get_service(db, tenant_id, data["service_id"])
    if "breaks" in data:
        data["breaks"] = serialize_breaks(data["breaks"])
    if "assigned_to" in data:
        data["assigned_to"] = validate_assignments(db, tenant_id, data["assigned_to"])

    targets = scoped_jobs(db, job, req.scope)

    if req.to_be_scheduled:
        if len(targets) > 1:
            raise ApiError("Only a single occurrence can be moved to the to-be-scheduled list", 400)
        if req.recurrence:
            raise ApiError("Recurring jobs must have a scheduled time", 400)

    if req.start_time or req.end_time:
        _shift_times(job, targets, req.start_time, req.end_time)
    elif req.to_be_scheduled is False and job.start_time is None:
        raise ApiError("start_time and end_time are required to schedule a job", 400)

    now = now_iso()
    for occ in targets:
        for key, value in data.items():
            setattr(occ, key, value)
        occ.updated_at = now

    if req.to_be_scheduled:
        job.to_be_scheduled = True
        job.start_time = job.end_time = None

    if req.status:
        for occ in targets:
            if occ.status != req.status.value:
                workflow.transition(db, occ, req.status, notes="Status updated")

    if req.recurrence:
        if job.recurrence_id:
            raise ApiError("Job already belongs to a recurring series", 400)
        if job.start_time is None:
            raise ApiError("Recurring jobs must have a scheduled time", 400)
        _convert_to_recurring(db, job, req.recurrence)

    db.commit()
    db.refresh(job)
    logger.info("Updated job %s (scope=%s, %d occurrences)", job.id, req.scope.value, len(targets))
    return job, targets


# ---- calendar scheduling ----------------------------------------------------

def schedule_job(db: Session, tenant_id: str, job_id: str, start: datetime, end: datetime) -> Job:
    """Place a job on the calendar, clearing its to-be-scheduled flag. Commits."""
    job = get_job(db, tenant_id, job_id)
    start, end = to_utc(start), to_utc(end)
    _check_times(start, end)
    job.start_time, job.end_time = to_iso(start), to_iso(end)
    job.to_be_scheduled = False
    job.updated_at = now_iso()
    db.commit()
    db.refresh(job)
    logger.info("Scheduled job %s at %s", job.id, job.start_time)
    return job


def unschedule_job(db: Session, tenant_id: str, job_id: str) -> Job:
    job = get_job(db, tenant_id, job_id)
    job.start_time = job.end_time = None
    job.to_be_scheduled = True
    job.updated_at = now_iso()
    db.commit()
    db.refresh(job)
    logger.info("Moved job %s to the to-be-scheduled list", job.id)
    return job


# ---- archival ---------------------------------------------------------------

def archive_jobs(db: Session, tenant_id: str, job_id: str, scope: EditScope) -> list[Job]:
    job = get_job(db, tenant_id, job_id)
    now = now_iso()
    targets = [occ for occ in scoped_jobs(db, job, scope) if occ.archived_at is None]
    for occ in targets:
        occ.archived_at = now
        occ.updated_at = now
    db.commit()
    logger.info("Archived %d jobs (scope=%s)", len(targets), scope.value)
    return targets


def restore_jobs(db: Session, tenant_id: str, job_id: str, scope: EditScope) -> list[Job]:
    job = get_job(db, tenant_id, job_id)
    if job.archived_at is None:
        raise ApiError("Job is not archived", 400)
    now = now_iso()
    targets = [occ for occ in scoped_jobs(db, job, scope, include_archived=True) if occ.archived_at]
    for occ in targets:
        occ.archived_at = None
        occ.updated_at = now
    db.commit()
    logger.info("Restored %d jobs (scope=%s)", len(targets), scope.value)
    return targets


def delete_jobs_permanently(db: Session, tenant_id: str, job_id: str, scope: EditScope) -> list[str]:
    job = get_job(db, tenant_id, job_id)
    targets = scoped_jobs(db, job, scope, include_archived=True)
    recurrence_id = job.recurrence_id
    deleted_ids = [occ.id for occ in targets]
    for occ in targets:
        db.delete(occ)
    db.flush()

    if recurrence_id:
        remaining = db.query(func.count(Job.id)).filter(Job.recurrence_id == recurrence_id).scalar()
        if not remaining:
            db.query(JobRecurrence).filter(JobRecurrence.id == recurrence_id).delete()
    db.commit()
    logger.info("Permanently deleted %d jobs (scope=%s)", len(deleted_ids), scope.value)
    return deleted_ids


# ---- queries ----------------------------------------------------------------

def list_jobs(
    db: Session,
    tenant_id: str,
    status: str | None = None,
    contact_id: str | None = None,
    service_id: str | None = None,
    recurrence_id: str | None = None,
    to_be_scheduled: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    include_archived: bool = False,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[Job], int]:
    query = db.query(Job).filter(Job.tenant_id == tenant_id, Job.deleted_at.is_(None))

    if not include_archived:
        query = query.filter(Job.archived_at.is_(None))
    if status:
        query = query.filter(Job.status == status)
    if contact_id:
        query = query.filter(Job.contact_id == contact_id)
    if service_id:
        query = query.filter(Job.service_id == service_id)
    if recurrence_id:
        query = query.filter(Job.recurrence_id == recurrence_id)
    if to_be_scheduled is not None:
        query = query.filter(Job.to_be_scheduled == to_be_scheduled)
    if start:
        query = query.filter(Job.start_time >= to_iso(start))
    if end:
        query = query.filter(Job.start_time < to_iso(end))

    total = query.count()
    jobs = (
        query.order_by(Job.to_be_scheduled.desc(), Job.start_time.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return jobs, total


def calendar_jobs(db: Session, tenant_id: str, start: datetime, end: datetime) -> list[Job]:
    """Scheduled jobs starting in ``[start, end)`` plus every unscheduled job."""
    in_range = (Job.to_be_scheduled.is_(False)) & (Job.start_time >= to_iso(start)) & (Job.start_time < to_iso(end))
    return (
        db.query(Job)
        .filter(Job.tenant_id == tenant_id, Job.archived_at.is_(None), Job.deleted_at.is_(None))
        .filter(in_range | Job.to_be_scheduled.is_(True))
        .order_by(Job.to_be_scheduled.desc(), Job.start_time.asc(), Job.created_at.asc())
        .all()
    )
