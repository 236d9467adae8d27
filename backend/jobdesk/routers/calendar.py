from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from jobdesk.database import get_db
from jobdesk.dependencies import require_auth
from jobdesk.models.job import Job
from jobdesk.resources import Resource
from jobdesk.schemas.job import JobResponse
from jobdesk.services import job_service
from jobdesk.services.auth_service import AuthSession
from jobdesk.services.calendar_service import generate_jobs_ics
from jobdesk.services.job_service import job_to_response

router = APIRouter(tags=[Resource.CALENDAR.value])


@router.get("/calendar", response_model=list[JobResponse])
async def calendar_range(start: datetime, end: datetime, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    if end <= start:
        raise HTTPException(status_code=400, detail="end must be after start")
    jobs = job_service.calendar_jobs(db, session.tenant_id, start, end)
    return [job_to_response(j) for j in jobs]


@router.get("/jobs/{job_id}/calendar")
async def job_calendar(job_id: str, session: AuthSession = Depends(require_auth), db: Session = Depends(get_db)):
    job = job_service.get_job(db, session.tenant_id, job_id)
    if job.to_be_scheduled:
        raise HTTPException(status_code=400, detail="Job is not scheduled")

    return Response(
        content=generate_jobs_ics([job]),
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="job_{job_id[:8]}.ics"'},
    )


@router.get("/calendar/feed.ics")
async def calendar_feed(session: AuthSession = Depends(require_auth), db: Session = Depends(get_db)):
    jobs = (
        db.query(Job)
        .filter(Job.tenant_id == session.tenant_id)
        .filter(Job.to_be_scheduled.is_(False))
        .filter(Job.archived_at.is_(None), Job.deleted_at.is_(None))
        .filter(Job.status != "cancelled")
        .order_by(Job.start_time.asc())
        .all()
    )
    return Response(
        content=generate_jobs_ics(jobs),
        media_type="text/calendar",
        headers={"Content-Disposition": 'attachment; filename="jobs.ics"'},
    )
