from fastapi import Header, HTTPException

from jobdesk.services.auth_service import AuthSession, auth_service


async def require_auth(authorization: str = Header(...)) -> AuthSession:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization[7:]
    session = auth_service.validate_token(token)
    if session is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    auth_service.touch(token)
    return session
