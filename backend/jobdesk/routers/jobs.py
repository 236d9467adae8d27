from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from jobdesk.database import get_db
from jobdesk.dependencies import require_auth
from jobdesk.resources import Resource
from jobdesk.schemas.job import (
    BulkResult,
    EditScope,
    JobConfirmRequest,
    JobCreate,
    JobDeclineRequest,
    JobListResponse,
    JobResponse,
    JobScheduleRequest,
    JobStatus,
    JobUpdate,
)
from jobdesk.services import booking_service, job_service, notification_service
from jobdesk.services.auth_service import AuthSession
from jobdesk.services.job_service import job_to_response

router = APIRouter(prefix="/jobs", tags=[Resource.JOBS.value])


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(req: JobCreate, session: AuthSession = Depends(require_auth),
                     db: Session = Depends(get_db)):
    job, count = job_service.create_job(db, session.tenant_id, req, created_by_id=session.user_id)
    response = job_to_response(job)
    response.occurrence_count = count
    return response


@router.get("", response_model=JobListResponse)
async def list_jobs(
    status: JobStatus | None = None,
    contact_id: str | None = None,
    service_id: str | None = None,
    recurrence_id: str | None = None,
    to_be_scheduled: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    include_archived: bool = False,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    session: AuthSession = Depends(require_auth),
    db: Session = Depends(get_db),
):
    jobs, total = job_service.list_jobs(
        db,
        session.tenant_id,
        status=status.value if status else None,
        contact_id=contact_id,
        service_id=service_id,
        recurrence_id=recurrence_id,
        to_be_scheduled=to_be_scheduled,
        start=start,
        end=end,
        include_archived=include_archived,
        page=page,
        per_page=per_page,
    )
    return JobListResponse(
        jobs=[job_to_response(j) for j in jobs],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, session: AuthSession = Depends(require_auth), db: Session = Depends(get_db)):
    return job_to_response(job_service.get_job(db, session.tenant_id, job_id), db)


@router.put("/{job_id}", response_model=JobResponse)
async def update_job(job_id: str, req: JobUpdate, session: AuthSession = Depends(require_auth),
                     db: Session = Depends(get_db)):
    job, _ = job_service.update_job(db, session.tenant_id, job_id, req)
    return job_to_response(job, db)


@router.delete("/{job_id}", response_model=BulkResult)
async def delete_job(
    job_id: str,
    scope: EditScope = EditScope.THIS,
    permanent: bool = False,
    session: AuthSession = Depends(require_auth),
    db: Session = Depends(get_db),
):
    if permanent:
        job_ids = job_service.delete_jobs_permanently(db, session.tenant_id, job_id, scope)
    else:
        job_ids = [j.id for j in job_service.archive_jobs(db, session.tenant_id, job_id, scope)]
    return BulkResult(affected=len(job_ids), job_ids=job_ids)


@router.post("/{job_id}/restore", response_model=BulkResult)
async def restore_job(job_id: str, scope: EditScope = EditScope.THIS,
                      session: AuthSession = Depends(require_auth), db: Session = Depends(get_db)):
    jobs = job_service.restore_jobs(db, session.tenant_id, job_id, scope)
    return BulkResult(affected=len(jobs), job_ids=[j.id for j in jobs])


@router.post("/{job_id}/confirm", response_model=JobResponse)
async def confirm_job(
    job_id: str,
    background_tasks: BackgroundTasks,
    req: JobConfirmRequest | None = None,
    session: AuthSession = Depends(require_auth),
    db: Session = Depends(get_db),
):
    scope = req.scope if req else EditScope.THIS
    job, _, notice = booking_service.confirm_job(db, session.tenant_id, job_id, scope)
    background_tasks.add_task(notification_service.notify_booking_confirmed, notice)
    return job_to_response(job, db)


@router.post("/{job_id}/decline", response_model=JobResponse)
async def decline_job(
    job_id: str,
    background_tasks: BackgroundTasks,
    req: JobDeclineRequest | None = None,
    session: AuthSession = Depends(require_auth),
    db: Session = Depends(get_db),
):
    job, notice = booking_service.decline_job(db, session.tenant_id, job_id, req.reason if req else None)
    background_tasks.add_task(notification_service.notify_booking_declined, notice)
    return job_to_response(job, db)


@router.post("/{job_id}/schedule", response_model=JobResponse)
async def schedule_job(job_id: str, req: JobScheduleRequest, session: AuthSession = Depends(require_auth),
                       db: Session = Depends(get_db)):
    job = job_service.schedule_job(db, session.tenant_id, job_id, req.start_time, req.end_time)
    return job_to_response(job, db)


@router.post("/{job_id}/unschedule", response_model=JobResponse)
async def unschedule_job(job_id: str, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    job = job_service.unschedule_job(db, session.tenant_id, job_id)
    return job_to_response(job, db)
