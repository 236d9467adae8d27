"""Job status lifecycle.

Every status change goes through :func:`transition`, which validates it
against the lifecycle table and appends a row to the job's event timeline.
"""
import logging
import uuid

from sqlalchemy.orm import Session

from jobdesk.errors import ApiError
from jobdesk.models.event import JobEvent
from jobdesk.models.job import Job
from jobdesk.schemas.job import JobStatus
from jobdesk.utils.timeutils import now_iso

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING_CONFIRMATION: {JobStatus.SCHEDULED, JobStatus.CANCELLED},
    JobStatus.SCHEDULED: {JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.CANCELLED},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED, JobStatus.CANCELLED},
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}


def can_transition(current: str | JobStatus, target: str | JobStatus) -> bool:
    return JobStatus(target) in ALLOWED_TRANSITIONS[JobStatus(current)]


def record_event(db: Session, job: Job, notes: str | None = None, occurred_at: str | None = None) -> JobEvent:
    event = JobEvent(
        id=str(uuid.uuid4()),
        job_id=job.id,
        event_type=job.status,
        notes=notes,
        occurred_at=occurred_at or now_iso(),
    )
    db.add(event)
    return event


def transition(db: Session, job: Job, target: str | JobStatus, notes: str | None = None) -> JobEvent:
    """Move ``job`` to ``target`` and log it. The caller commits."""
    target = JobStatus(target)
    if not can_transition(job.status, target):
        raise ApiError(f"Cannot change job status from {job.status} to {target.value}", 400)

    now = now_iso()
    previous = job.status
    job.status = target.value
    job.updated_at = now
    logger.info("Job %s: %s -> %s", job.id, previous, target.value)
    return record_event(db, job, notes=notes, occurred_at=now)
