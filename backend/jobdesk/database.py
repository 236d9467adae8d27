import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from jobdesk.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- TENANTS & USERS
-- ============================================================
CREATE TABLE IF NOT EXISTS tenants (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    tenant_id     TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
    email         TEXT NOT NULL UNIQUE,
    name          TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    role          TEXT NOT NULL DEFAULT 'member' CHECK(role IN ('owner','member')),
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_users_tenant ON users(tenant_id);

-- ============================================================
-- AUTH THROTTLE
-- ============================================================
CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- CONTACTS
-- ============================================================
CREATE TABLE IF NOT EXISTS contacts (
    id                      TEXT PRIMARY KEY,
    tenant_id               TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
    first_name              TEXT NOT NULL,
    last_name               TEXT NOT NULL DEFAULT '',
    email                   TEXT,
    phone                   TEXT,
    company                 TEXT,
    address                 TEXT,
    notes                   TEXT,
    notification_preference TEXT NOT NULL DEFAULT 'both'
                            CHECK(notification_preference IN ('email','sms','both','none')),
    created_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_contacts_tenant ON contacts(tenant_id);
CREATE INDEX IF NOT EXISTS idx_contacts_email ON contacts(tenant_id, email);

-- ============================================================
-- SERVICES
-- ============================================================
CREATE TABLE IF NOT EXISTS services (
    id               TEXT PRIMARY KEY,
    tenant_id        TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
    name             TEXT NOT NULL,
    description      TEXT,
    duration         INTEGER NOT NULL CHECK(duration > 0),
    price            REAL,
    is_active        INTEGER NOT NULL DEFAULT 1,
    availability     TEXT,
    booking_settings TEXT,
    created_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_services_tenant ON services(tenant_id);

-- ============================================================
-- RECURRENCES
-- ============================================================
CREATE TABLE IF NOT EXISTS job_recurrences (
    id           TEXT PRIMARY KEY,
    tenant_id    TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
    contact_id   TEXT NOT NULL REFERENCES contacts(id) ON DELETE RESTRICT,
    service_id   TEXT REFERENCES services(id) ON DELETE SET NULL,
    title        TEXT NOT NULL,
    frequency    TEXT NOT NULL CHECK(frequency IN ('daily','weekly','monthly','custom')),
    interval     INTEGER NOT NULL CHECK(interval >= 1),
    count        INTEGER,
    until_date   TEXT,
    days_of_week TEXT,
    start_time   TEXT NOT NULL,
    end_time     TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_recurrences_tenant ON job_recurrences(tenant_id);

-- ============================================================
-- JOBS (one row per occurrence)
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id              TEXT PRIMARY KEY,
    tenant_id       TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
    title           TEXT NOT NULL,
    description     TEXT,
    contact_id      TEXT NOT NULL REFERENCES contacts(id) ON DELETE RESTRICT,
    service_id      TEXT REFERENCES services(id) ON DELETE SET NULL,
    recurrence_id   TEXT REFERENCES job_recurrences(id) ON DELETE SET NULL,
    start_time      TEXT,
    end_time        TEXT,
    to_be_scheduled INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'scheduled'
                    CHECK(status IN ('pending-confirmation','scheduled','in-progress',
                                     'completed','cancelled')),
    location        TEXT,
    price           REAL,
    notes           TEXT,
    breaks          TEXT,
    assigned_to     TEXT,
    archived_at     TEXT,
    deleted_at      TEXT,
    created_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    CHECK ((to_be_scheduled = 1 AND start_time IS NULL AND end_time IS NULL)
        OR (to_be_scheduled = 0 AND start_time IS NOT NULL AND end_time IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_jobs_tenant ON jobs(tenant_id);
CREATE INDEX IF NOT EXISTS idx_jobs_service ON jobs(service_id);
CREATE INDEX IF NOT EXISTS idx_jobs_recurrence ON jobs(recurrence_id);
CREATE INDEX IF NOT EXISTS idx_jobs_start ON jobs(start_time);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_to_be_scheduled ON jobs(to_be_scheduled);

-- ============================================================
-- JOB EVENTS (status timeline)
-- ============================================================
CREATE TABLE IF NOT EXISTS job_events (
    id          TEXT PRIMARY KEY,
    job_id      TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    event_type  TEXT NOT NULL
                CHECK(event_type IN ('pending-confirmation','scheduled','in-progress',
                                     'completed','cancelled')),
    notes       TEXT,
    occurred_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_job_events_job ON job_events(job_id);
"""


MIGRATIONS = [
    # v0.2: created_by on jobs
    "ALTER TABLE jobs ADD COLUMN created_by_id TEXT REFERENCES users(id) ON DELETE SET NULL",
]


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    # Run migrations idempotently (ALTER TABLE fails if column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # column already exists
    conn.close()
