import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from jobdesk.database import get_db
from jobdesk.dependencies import require_auth
from jobdesk.models.contact import Contact
from jobdesk.models.job import Job
from jobdesk.resources import Resource
from jobdesk.schemas.contact import ContactCreate, ContactResponse, ContactUpdate
from jobdesk.services.auth_service import AuthSession
from jobdesk.utils.timeutils import now_iso

router = APIRouter(prefix="/contacts", tags=[Resource.CONTACTS.value])


def _contact_to_response(contact: Contact, db: Session) -> ContactResponse:
    job_count = (
        db.query(func.count(Job.id))
        .filter(Job.contact_id == contact.id, Job.deleted_at.is_(None))
        .scalar()
    )
    return ContactResponse(
        id=contact.id,
        first_name=contact.first_name,
        last_name=contact.last_name,
        email=contact.email,
        phone=contact.phone,
        company=contact.company,
        address=contact.address,
        notes=contact.notes,
        notification_preference=contact.notification_preference,
        created_at=contact.created_at,
        updated_at=contact.updated_at,
        job_count=job_count,
    )


def _get_contact(db: Session, tenant_id: str, contact_id: str) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id, Contact.tenant_id == tenant_id).first()
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.post("", response_model=ContactResponse, status_code=201)
async def create_contact(req: ContactCreate, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    now = now_iso()
    contact = Contact(id=str(uuid.uuid4()), tenant_id=session.tenant_id, created_at=now, updated_at=now,
                      **req.model_dump())
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return _contact_to_response(contact, db)


@router.get("", response_model=list[ContactResponse])
async def list_contacts(
    q: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    session: AuthSession = Depends(require_auth),
    db: Session = Depends(get_db),
):
    query = db.query(Contact).filter(Contact.tenant_id == session.tenant_id)
    if q:
        query = query.filter(
            Contact.first_name.ilike(f"%{q}%")
            | Contact.last_name.ilike(f"%{q}%")
            | Contact.email.ilike(f"%{q}%")
            | Contact.company.ilike(f"%{q}%")
        )
    contacts = (
        query.order_by(Contact.last_name.asc(), Contact.first_name.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return [_contact_to_response(c, db) for c in contacts]


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(contact_id: str, session: AuthSession = Depends(require_auth),
                      db: Session = Depends(get_db)):
    return _contact_to_response(_get_contact(db, session.tenant_id, contact_id), db)


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(contact_id: str, req: ContactUpdate, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    contact = _get_contact(db, session.tenant_id, contact_id)
    update_data = req.model_dump(exclude_unset=True)
    if "first_name" in update_data and not update_data["first_name"]:
        raise HTTPException(status_code=400, detail="first_name cannot be empty")
    for key, value in update_data.items():
        setattr(contact, key, value)
    contact.updated_at = now_iso()

    db.commit()
    db.refresh(contact)
    return _contact_to_response(contact, db)


@router.delete("/{contact_id}")
async def delete_contact(contact_id: str, session: AuthSession = Depends(require_auth),
                         db: Session = Depends(get_db)):
    contact = _get_contact(db, session.tenant_id, contact_id)
    if db.query(Job.id).filter(Job.contact_id == contact.id).first():
        raise HTTPException(status_code=409, detail="Contact has jobs and cannot be deleted")
    db.delete(contact)
    db.commit()
    return {"message": "Contact deleted"}
