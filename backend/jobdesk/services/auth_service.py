import logging
import time
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session
from sqlalchemy import text

from jobdesk.config import settings
from jobdesk.errors import ApiError, ConflictError
from jobdesk.models.tenant import Tenant, User
from jobdesk.utils.security import generate_token, hash_password, verify_password
from jobdesk.utils.timeutils import now_iso

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass
class AuthSession:
    token: str
    tenant_id: str
    user_id: str
    expires_at: float


class AuthService:
    """Bearer sessions held in process memory with a sliding expiry."""

    def __init__(self):
        self._sessions: dict[str, AuthSession] = {}

    def _cleanup_expired(self):
        now = time.time()
        self._sessions = {t: s for t, s in self._sessions.items() if s.expires_at > now}

    def register(self, db: Session, tenant_name: str, name: str, email: str, password: str) -> User:
        email = email.strip().lower()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ApiError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", 400)
        if db.query(User).filter(User.email == email).first():
            raise ConflictError("Email already registered")

        now = now_iso()
        tenant = Tenant(id=str(uuid.uuid4()), name=tenant_name.strip(), created_at=now)
        user = User(
            id=str(uuid.uuid4()),
            tenant_id=tenant.id,
            email=email,
            name=name.strip(),
            password_hash=hash_password(password),
            role="owner",
            created_at=now,
        )
        db.add(tenant)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Registered tenant %s with owner %s", tenant.id, user.id)
        return user

    def login(self, db: Session, email: str, password: str) -> dict | None:
        email = email.strip().lower()
        throttle_key = f"login:{email}"
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            return {"error": "too_many_attempts", "retry_after_seconds": delay}

        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(user.password_hash, password):
            self._record_failed_attempt(db, throttle_key)
            logger.warning("Failed login for %s", email)
            return None

        self._reset_failed_attempts(db, throttle_key)
        token = generate_token()
        ttl = settings.session_ttl_seconds
        self._sessions[token] = AuthSession(
            token=token, tenant_id=user.tenant_id, user_id=user.id, expires_at=time.time() + ttl,
        )
        return {"token": token, "expires_in_seconds": ttl, "tenant_id": user.tenant_id, "user_id": user.id}

    def logout(self, token: str):
        self._sessions.pop(token, None)

    def clear(self):
        self._sessions.clear()

    def validate_token(self, token: str) -> AuthSession | None:
        self._cleanup_expired()
        return self._sessions.get(token)

    def touch(self, token: str):
        session = self._sessions.get(token)
        if session:
            session.expires_at = time.time() + settings.session_ttl_seconds

    def _get_throttle_delay(self, db: Session, key: str) -> float:
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if not row:
            return 0
        failed_attempts = int(row[0])
        last_failed_at = float(row[1])

        if failed_attempts < 3:
            return 0
        if failed_attempts < 5:
            delay = 5.0
        elif failed_attempts < 10:
            delay = 30.0
        else:
            delay = 300.0
        elapsed = time.time() - last_failed_at
        remaining = delay - elapsed
        return max(0, remaining)

    def _record_failed_attempt(self, db: Session, key: str):
        now = time.time()
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 1, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = failed_attempts + 1,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": now},
        )
        db.commit()

    def _reset_failed_attempts(self, db: Session, key: str):
        db.execute(
            text("DELETE FROM auth_throttle WHERE key = :key"),
            {"key": key},
        )
        db.commit()


auth_service = AuthService()
