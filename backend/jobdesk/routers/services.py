import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from jobdesk.config import settings
from jobdesk.database import get_db
from jobdesk.dependencies import require_auth
from jobdesk.models.service import Service
from jobdesk.resources import Resource
from jobdesk.schemas.service import BookingLinkResponse, ServiceCreate, ServiceResponse, ServiceUpdate
from jobdesk.services.auth_service import AuthSession
from jobdesk.utils.timeutils import now_iso

router = APIRouter(prefix="/services", tags=[Resource.SERVICES.value])


def _service_to_response(service: Service) -> ServiceResponse:
    return ServiceResponse(
        id=service.id,
        name=service.name,
        description=service.description,
        duration=service.duration,
        price=service.price,
        is_active=bool(service.is_active),
        availability=service.availability,
        booking_settings=service.booking_settings,
        created_at=service.created_at,
        updated_at=service.updated_at,
    )


def _get_service(db: Session, tenant_id: str, service_id: str) -> Service:
    service = db.query(Service).filter(Service.id == service_id, Service.tenant_id == tenant_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


@router.post("", response_model=ServiceResponse, status_code=201)
async def create_service(req: ServiceCreate, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    now = now_iso()
    service = Service(
        id=str(uuid.uuid4()),
        tenant_id=session.tenant_id,
        name=req.name,
        description=req.description,
        duration=req.duration,
        price=req.price,
        is_active=req.is_active,
        availability=req.availability.model_dump() if req.availability else None,
        booking_settings=req.booking_settings.model_dump() if req.booking_settings else None,
        created_at=now,
        updated_at=now,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return _service_to_response(service)


@router.get("", response_model=list[ServiceResponse])
async def list_services(active: bool | None = None, session: AuthSession = Depends(require_auth),
                        db: Session = Depends(get_db)):
    query = db.query(Service).filter(Service.tenant_id == session.tenant_id)
    if active is not None:
        query = query.filter(Service.is_active == active)
    return [_service_to_response(s) for s in query.order_by(Service.name.asc()).all()]


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: str, session: AuthSession = Depends(require_auth),
                      db: Session = Depends(get_db)):
    return _service_to_response(_get_service(db, session.tenant_id, service_id))


@router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(service_id: str, req: ServiceUpdate, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    service = _get_service(db, session.tenant_id, service_id)
    update_data = req.model_dump(exclude_unset=True)
    if "name" in update_data and not update_data["name"]:
        raise HTTPException(status_code=400, detail="name cannot be empty")
    if "duration" in update_data and update_data["duration"] is None:
        raise HTTPException(status_code=400, detail="duration cannot be empty")
    for key, value in update_data.items():
        setattr(service, key, value)
    service.updated_at = now_iso()

    db.commit()
    db.refresh(service)
    return _service_to_response(service)


@router.delete("/{service_id}")
async def delete_service(service_id: str, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    service = _get_service(db, session.tenant_id, service_id)
    db.delete(service)
    db.commit()
    return {"message": "Service deleted"}


@router.get("/{service_id}/booking-link", response_model=BookingLinkResponse)
async def booking_link(service_id: str, session: AuthSession = Depends(require_auth),
                       db: Session = Depends(get_db)):
    service = _get_service(db, session.tenant_id, service_id)
    if not service.is_active:
        raise HTTPException(status_code=400, detail="Service is not active")
    link = f"{settings.public_app_url.rstrip('/')}/book/{service.id}"
    embed = f'<iframe src="{link}" width="100%" height="720" frameborder="0"></iframe>'
    return BookingLinkResponse(
        service_id=service.id,
        service_name=service.name,
        public_link=link,
        embed_code=embed,
    )
