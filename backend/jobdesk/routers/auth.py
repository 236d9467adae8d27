from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from jobdesk.database import get_db
from jobdesk.dependencies import require_auth
from jobdesk.models.tenant import User
from jobdesk.resources import Resource
from jobdesk.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ThrottleResponse,
    UserResponse,
)
from jobdesk.services.auth_service import AuthSession, auth_service

router = APIRouter(prefix="/auth", tags=[Resource.AUTH.value])


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        tenant_id=user.tenant_id,
        email=user.email,
        name=user.name,
        role=user.role,
    )


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(req: RegisterRequest, db: Session = Depends(get_db)):
    if not req.tenant_name.strip() or not req.name.strip():
        raise HTTPException(status_code=400, detail="Business name and user name are required")
    user = auth_service.register(db, req.tenant_name, req.name, req.email, req.password)
    return _user_to_response(user)


@router.post("/login", response_model=LoginResponse | ThrottleResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
    result = auth_service.login(db, req.email, req.password)
    if result is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if "error" in result:
        raise HTTPException(status_code=429, detail=result)
    return LoginResponse(**result)


@router.post("/logout")
async def logout(session: AuthSession = Depends(require_auth)):
    auth_service.logout(session.token)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(session: AuthSession = Depends(require_auth), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == session.user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_to_response(user)
