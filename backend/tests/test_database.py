import sqlite3

from conftest import iso, next_weekday, register_and_login
from jobdesk.database import init_db


def _job_columns(db_path):
    conn = sqlite3.connect(str(db_path))
    try:
        return [row[1] for row in conn.execute("PRAGMA table_info(jobs)")]
    finally:
        conn.close()


class TestInitDb:
    def test_migrations_add_created_by(self, tmp_path):
        db_path = tmp_path / "db.sqlite"
        init_db(db_path)
        assert "created_by_id" in _job_columns(db_path)

    def test_init_is_idempotent(self, tmp_path):
        db_path = tmp_path / "db.sqlite"
        init_db(db_path)
        init_db(db_path)
        assert _job_columns(db_path).count("created_by_id") == 1

    def test_jobs_record_their_creator(self, client):
        h = register_and_login(client)
        me = client.get("/api/v1/auth/me", headers=h).json()
        contact = client.post("/api/v1/contacts", json={"first_name": "Carla"}, headers=h).json()
        start = next_weekday(0)

        r = client.post("/api/v1/jobs", json={
            "title": "Deep clean",
            "contact_id": contact["id"],
            "start_time": iso(start),
            "end_time": iso(start.replace(hour=12)),
        }, headers=h)
        assert r.status_code == 201
        assert r.json()["created_by_id"] == me["id"]
