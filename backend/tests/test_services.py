import pytest

from conftest import register_and_login

HOURS = [{"day_of_week": d, "start_time": "09:00", "end_time": "17:00"} for d in range(1, 6)]


class TestServicesCRUD:
    def test_create_service(self, client):
        h = register_and_login(client)
        r = client.post("/api/v1/services", json={
            "name": "Standard Clean",
            "duration": 90,
            "price": 150.0,
            "availability": {"working_hours": HOURS, "buffer_time": 15},
        }, headers=h)
        assert r.status_code == 201
        data = r.json()
        assert data["duration"] == 90
        assert data["is_active"] is True
        assert data["availability"]["buffer_time"] == 15
        assert len(data["availability"]["working_hours"]) == 5

    @pytest.mark.parametrize("body", [
        {"name": "Zero", "duration": 0},
        {"name": "Bad hours", "duration": 60, "availability": {
            "working_hours": [{"day_of_week": 1, "start_time": "9am", "end_time": "17:00"}],
        }},
        {"name": "Bad day", "duration": 60, "availability": {
            "working_hours": [{"day_of_week": 7, "start_time": "09:00", "end_time": "17:00"}],
        }},
        {"name": "No capacity", "duration": 60, "booking_settings": {"max_bookings_per_slot": 0}},
    ])
    def test_rejects_invalid_service(self, client, body):
        h = register_and_login(client)
        r = client.post("/api/v1/services", json=body, headers=h)
        assert r.status_code == 422

    def test_list_filters_active(self, client):
        h = register_and_login(client)
        client.post("/api/v1/services", json={"name": "Active", "duration": 60}, headers=h)
        client.post("/api/v1/services", json={"name": "Retired", "duration": 60, "is_active": False}, headers=h)

        assert len(client.get("/api/v1/services", headers=h).json()) == 2
        r = client.get("/api/v1/services", params={"active": True}, headers=h)
        assert [s["name"] for s in r.json()] == ["Active"]

    def test_update_service(self, client):
        h = register_and_login(client)
        service_id = client.post("/api/v1/services", json={"name": "Clean", "duration": 60}, headers=h).json()["id"]

        r = client.put(f"/api/v1/services/{service_id}", json={
            "duration": 120,
            "booking_settings": {"require_confirmation": True},
        }, headers=h)
        assert r.status_code == 200
        data = r.json()
        assert data["duration"] == 120
        assert data["booking_settings"]["require_confirmation"] is True
        assert data["booking_settings"]["max_bookings_per_slot"] == 1

    def test_services_are_tenant_scoped(self, client):
        h1 = register_and_login(client)
        service_id = client.post("/api/v1/services", json={"name": "Clean", "duration": 60}, headers=h1).json()["id"]

        h2 = register_and_login(client, email="rival@example.com", tenant_name="Rival Co")
        assert client.get(f"/api/v1/services/{service_id}", headers=h2).status_code == 404
        assert client.delete(f"/api/v1/services/{service_id}", headers=h2).status_code == 404

    def test_delete_service(self, client):
        h = register_and_login(client)
        service_id = client.post("/api/v1/services", json={"name": "Clean", "duration": 60}, headers=h).json()["id"]

        assert client.delete(f"/api/v1/services/{service_id}", headers=h).status_code == 200
        assert client.get(f"/api/v1/services/{service_id}", headers=h).status_code == 404


class TestBookingLink:
    def test_booking_link(self, client):
        h = register_and_login(client)
        service_id = client.post("/api/v1/services", json={"name": "Clean", "duration": 60}, headers=h).json()["id"]

        r = client.get(f"/api/v1/services/{service_id}/booking-link", headers=h)
        assert r.status_code == 200
        data = r.json()
        assert data["public_link"].endswith(f"/book/{service_id}")
        assert data["public_link"] in data["embed_code"]

    def test_inactive_service_has_no_link(self, client):
        h = register_and_login(client)
        service_id = client.post("/api/v1/services", json={
            "name": "Clean", "duration": 60, "is_active": False,
        }, headers=h).json()["id"]

        r = client.get(f"/api/v1/services/{service_id}/booking-link", headers=h)
        assert r.status_code == 400
