from pydantic import BaseModel


class RegisterRequest(BaseModel):
    tenant_name: str
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_in_seconds: int
    tenant_id: str
    user_id: str


class ThrottleResponse(BaseModel):
    error: str
    retry_after_seconds: float


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    email: str
    name: str
    role: str
