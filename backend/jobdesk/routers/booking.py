from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from jobdesk.database import get_db
from jobdesk.resources import Resource
from jobdesk.schemas.service import AvailabilityResponse, BookingRequest, BookingResponse
from jobdesk.services import booking_service, notification_service
from jobdesk.services.job_service import job_to_response
from jobdesk.utils.timeutils import utcnow

# Public routes: the tenant is the owner of the requested service
router = APIRouter(prefix="/services", tags=[Resource.BOOKING.value])


@router.get("/{service_id}/availability", response_model=AvailabilityResponse)
async def service_availability(
    service_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
):
    days = booking_service.get_availability(db, service_id, utcnow(), start, end)
    return AvailabilityResponse(service_id=service_id, slots=days)


@router.post("/{service_id}/book", response_model=BookingResponse, status_code=201)
async def book_service(
    service_id: str,
    req: BookingRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    result = booking_service.book_slot(db, service_id, req, utcnow())

    if result.pending:
        background_tasks.add_task(notification_service.notify_booking_received, result.notice)
    else:
        background_tasks.add_task(notification_service.notify_booking_confirmed, result.notice)
    background_tasks.add_task(notification_service.notify_owner_new_booking, result.notice, result.pending)

    return BookingResponse(
        job=job_to_response(result.job, db),
        status=result.job.status,
        occurrence_count=result.occurrence_count,
    )
