from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from jobdesk.database import get_db
from jobdesk.main import app
from jobdesk.config import settings
from jobdesk.services import notification_service
from jobdesk.services.auth_service import auth_service


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def tmp_data(tmp_path):
    data_path = tmp_path / "JobDesk"
    data_path.mkdir()
    return data_path


@pytest.fixture
def test_db(tmp_data):
    db_path = tmp_data / "db.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    from jobdesk.database import init_db
    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def fresh_auth_service():
    """Reset session state for each test."""
    auth_service.clear()
    yield auth_service
    auth_service.clear()


@pytest.fixture
def outbox(monkeypatch):
    """Capture outbound email and SMS instead of calling Resend/Twilio."""
    sent = {"email": [], "sms": []}

    def fake_email(to, subject, html):
        sent["email"].append({"to": to, "subject": subject, "html": html})
        return True

    def fake_sms(to, body):
        sent["sms"].append({"to": to, "body": body})
        return True

    monkeypatch.setattr(notification_service, "send_email", fake_email)
    monkeypatch.setattr(notification_service, "send_sms", fake_sms)
    return sent


@pytest.fixture
def client(tmp_data, test_db, fresh_auth_service, outbox):
    original_data_path = settings.data_path
    settings.data_path = tmp_data
    c = TestClient(app)
    yield c
    settings.data_path = original_data_path


def register_and_login(client, email="owner@example.com", tenant_name="Sparkle Cleaning"):
    client.post("/api/v1/auth/register", json={
        "tenant_name": tenant_name,
        "name": "Olive Owner",
        "email": email,
        "password": "correct-horse-1",
    })
    r = client.post("/api/v1/auth/login", json={"email": email, "password": "correct-horse-1"})
    return {"Authorization": f"Bearer {r.json()['token']}"}


def iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def next_weekday(weekday: int, hour: int = 10, weeks_ahead: int = 1) -> datetime:
    """A UTC datetime on ``weekday`` (Python numbering, Monday = 0) at least a day away."""
    today = datetime.now(timezone.utc).replace(hour=hour, minute=0, second=0, microsecond=0)
    days = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days + 7 * (weeks_ahead - 1))
