import pytest

from conftest import iso, next_weekday, register_and_login


class TestContactsCRUD:
    def test_create_contact(self, client):
        h = register_and_login(client)
        r = client.post("/api/v1/contacts", json={
            "first_name": "Carla",
            "last_name": "Client",
            "email": "carla@example.com",
            "phone": "555-010-2000",
        }, headers=h)
        assert r.status_code == 201
        data = r.json()
        assert data["first_name"] == "Carla"
        assert data["notification_preference"] == "both"
        assert data["job_count"] == 0

    def test_rejects_unknown_notification_preference(self, client):
        h = register_and_login(client)
        r = client.post("/api/v1/contacts", json={
            "first_name": "Carla",
            "notification_preference": "pigeon",
        }, headers=h)
        assert r.status_code == 422

    def test_list_and_search(self, client):
        h = register_and_login(client)
        client.post("/api/v1/contacts", json={"first_name": "Carla", "last_name": "Client"}, headers=h)
        client.post("/api/v1/contacts", json={"first_name": "Dan", "company": "Acme"}, headers=h)

        r = client.get("/api/v1/contacts", headers=h)
        assert r.status_code == 200
        assert len(r.json()) == 2

        r = client.get("/api/v1/contacts", params={"q": "acme"}, headers=h)
        assert [c["first_name"] for c in r.json()] == ["Dan"]

    def test_update_contact(self, client):
        h = register_and_login(client)
        contact_id = client.post("/api/v1/contacts", json={"first_name": "Carla"}, headers=h).json()["id"]

        r = client.put(f"/api/v1/contacts/{contact_id}", json={"notification_preference": "sms"}, headers=h)
        assert r.status_code == 200
        assert r.json()["notification_preference"] == "sms"

    def test_contacts_are_tenant_scoped(self, client):
        h1 = register_and_login(client)
        contact_id = client.post("/api/v1/contacts", json={"first_name": "Carla"}, headers=h1).json()["id"]

        h2 = register_and_login(client, email="rival@example.com", tenant_name="Rival Co")
        r = client.get(f"/api/v1/contacts/{contact_id}", headers=h2)
        assert r.status_code == 404
        assert client.get("/api/v1/contacts", headers=h2).json() == []

    def test_delete_contact(self, client):
        h = register_and_login(client)
        contact_id = client.post("/api/v1/contacts", json={"first_name": "Carla"}, headers=h).json()["id"]

        r = client.delete(f"/api/v1/contacts/{contact_id}", headers=h)
        assert r.status_code == 200
        assert client.get(f"/api/v1/contacts/{contact_id}", headers=h).status_code == 404

    def test_cannot_delete_contact_with_jobs(self, client):
        h = register_and_login(client)
        contact_id = client.post("/api/v1/contacts", json={"first_name": "Carla"}, headers=h).json()["id"]
        start = next_weekday(0)
        client.post("/api/v1/jobs", json={
            "title": "Deep clean",
            "contact_id": contact_id,
            "start_time": iso(start),
            "end_time": iso(start.replace(hour=12)),
        }, headers=h)

        r = client.delete(f"/api/v1/contacts/{contact_id}", headers=h)
        assert r.status_code == 409
