from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from jobdesk.database import get_db
from jobdesk.dependencies import require_auth
from jobdesk.models.event import JobEvent
from jobdesk.resources import Resource
from jobdesk.schemas.event import EventCreate, EventResponse
from jobdesk.services import job_service, workflow
from jobdesk.services.auth_service import AuthSession

router = APIRouter(tags=[Resource.EVENTS.value])


def _event_to_response(ev: JobEvent) -> EventResponse:
    return EventResponse(
        id=ev.id,
        job_id=ev.job_id,
        event_type=ev.event_type,
        notes=ev.notes,
        occurred_at=ev.occurred_at,
    )


@router.post("/jobs/{job_id}/events", response_model=EventResponse, status_code=201)
async def add_event(job_id: str, req: EventCreate, session: AuthSession = Depends(require_auth),
                    db: Session = Depends(get_db)):
    job = job_service.get_job(db, session.tenant_id, job_id)
    event = workflow.transition(db, job, req.event_type, notes=req.notes)
    db.commit()
    db.refresh(event)
    return _event_to_response(event)


@router.get("/jobs/{job_id}/events", response_model=list[EventResponse])
async def list_events(job_id: str, session: AuthSession = Depends(require_auth), db: Session = Depends(get_db)):
    job_service.get_job(db, session.tenant_id, job_id)
    events = (
        db.query(JobEvent)
        .filter(JobEvent.job_id == job_id)
        .order_by(JobEvent.occurred_at.asc(), text("job_events.rowid"))
        .all()
    )
    return [_event_to_response(e) for e in events]
