import httpx
import pytest
import resend

from conftest import iso, next_weekday, register_and_login
from jobdesk.config import settings
from jobdesk.services import notification_service
from jobdesk.services.notification_service import normalize_phone, send_email, send_sms


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
    monkeypatch.setattr(settings, "twilio_auth_token", "secret")
    monkeypatch.setattr(settings, "twilio_phone_number", "+15550000000")


@pytest.fixture
def failing_providers(monkeypatch, configured):
    """Real senders wired to providers that fail."""
    def broken_send(params):
        raise RuntimeError("resend unavailable")

    def broken_post(url, **kwargs):
        raise httpx.ConnectError("twilio unreachable")

    monkeypatch.setattr(resend.Emails, "send", broken_send)
    monkeypatch.setattr(httpx, "post", broken_post)
    monkeypatch.setattr(notification_service, "send_email", send_email)
    monkeypatch.setattr(notification_service, "send_sms", send_sms)


class TestSenders:
    def test_email_skipped_when_unconfigured(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", None)
        assert send_email("carla@example.com", "Hi", "<p>Hi</p>") is False

    def test_email_sent(self, monkeypatch, configured):
        sent = []
        monkeypatch.setattr(resend.Emails, "send", lambda params: sent.append(params) or {"id": "em_1"})
        assert send_email("carla@example.com", "Hi", "<p>Hi</p>") is True
        assert sent[0]["to"] == ["carla@example.com"]
        assert sent[0]["from"] == settings.email_from_address

    def test_email_failure_logged_and_swallowed(self, monkeypatch, configured, caplog):
        def broken_send(params):
            raise RuntimeError("resend unavailable")

        monkeypatch.setattr(resend.Emails, "send", broken_send)
        assert send_email("carla@example.com", "Hi", "<p>Hi</p>") is False
        assert "resend unavailable" in caplog.text

    def test_sms_sent(self, monkeypatch, configured):
        calls = []

        def fake_post(url, **kwargs):
            calls.append((url, kwargs))
            return httpx.Response(201, json={"sid": "SM1"})

        monkeypatch.setattr(httpx, "post", fake_post)
        assert send_sms("555-010-2000", "Hello") is True
        url, kwargs = calls[0]
        assert "/Accounts/AC123/Messages.json" in url
        assert kwargs["data"]["To"] == "+15550102000"

    def test_sms_rejected_by_provider(self, monkeypatch, configured, caplog):
        monkeypatch.setattr(httpx, "post", lambda url, **kwargs: httpx.Response(500, text="server error"))
        assert send_sms("5550102000", "Hello") is False
        assert "500" in caplog.text

    def test_sms_transport_error(self, monkeypatch, configured):
        def broken_post(url, **kwargs):
            raise httpx.ConnectError("twilio unreachable")

        monkeypatch.setattr(httpx, "post", broken_post)
        assert send_sms("5550102000", "Hello") is False

    @pytest.mark.parametrize("raw, expected", [
        ("(555) 010-2000", "+15550102000"),
        ("1-555-010-2000", "+15550102000"),
        ("+44 20 7946 0000", "+44 20 7946 0000"),
    ])
    def test_normalize_phone(self, raw, expected):
        assert normalize_phone(raw) == expected


class TestNotificationFailures:
    def _service(self, client, h, require_confirmation=False):
        return client.post("/api/v1/services", json={
            "name": "Standard Clean",
            "duration": 60,
            "availability": {
                "working_hours": [
                    {"day_of_week": d, "start_time": "09:00", "end_time": "17:00"} for d in range(7)
                ],
                "timezone_offset": 0,
            },
            "booking_settings": {"require_confirmation": require_confirmation},
        }, headers=h).json()

    def _book(self, client, service_id):
        return client.post(f"/api/v1/services/{service_id}/book", json={
            "start_time": iso(next_weekday(2)),
            "contact": {"name": "Carla Client", "email": "carla@example.com", "phone": "5550102000"},
        })

    def test_booking_commits_when_senders_fail(self, client, failing_providers):
        h = register_and_login(client)
        service = self._service(client, h)

        r = self._book(client, service["id"])
        assert r.status_code == 201

        job = client.get(f"/api/v1/jobs/{r.json()['job']['id']}", headers=h).json()
        assert job["status"] == "scheduled"

    def test_confirm_commits_when_senders_fail(self, client, failing_providers):
        h = register_and_login(client)
        service = self._service(client, h, require_confirmation=True)
        job = self._book(client, service["id"]).json()["job"]

        r = client.post(f"/api/v1/jobs/{job['id']}/confirm", headers=h)
        assert r.status_code == 200

        stored = client.get(f"/api/v1/jobs/{job['id']}", headers=h).json()
        assert stored["status"] == "scheduled"


class TestEmailContent:
    def test_booking_details_are_escaped(self, client, outbox):
        h = register_and_login(client)
        service = client.post("/api/v1/services", json={
            "name": "Standard Clean",
            "duration": 60,
            "availability": {
                "working_hours": [
                    {"day_of_week": d, "start_time": "09:00", "end_time": "17:00"} for d in range(7)
                ],
                "timezone_offset": 0,
            },
        }, headers=h).json()

        r = client.post(f"/api/v1/services/{service['id']}/book", json={
            "start_time": iso(next_weekday(2)),
            "contact": {"name": "Carla <script>x</script>", "email": "carla@example.com"},
        })
        assert r.status_code == 201

        owner_mail = [m for m in outbox["email"] if m["to"] == ["owner@example.com"]][0]
        assert "<script>" not in owner_mail["html"]
        assert "&lt;script&gt;x&lt;/script&gt;" in owner_mail["html"]

    def test_decline_reason_is_escaped(self, client, outbox):
        h = register_and_login(client)
        service = client.post("/api/v1/services", json={
            "name": "Window Wash",
            "duration": 60,
            "availability": {
                "working_hours": [
                    {"day_of_week": d, "start_time": "09:00", "end_time": "17:00"} for d in range(7)
                ],
                "timezone_offset": 0,
            },
            "booking_settings": {"require_confirmation": True},
        }, headers=h).json()
        job = client.post(f"/api/v1/services/{service['id']}/book", json={
            "start_time": iso(next_weekday(2)),
            "contact": {"name": "Carla Client", "email": "carla@example.com"},
        }).json()["job"]
        outbox["email"].clear()

        r = client.post(f"/api/v1/jobs/{job['id']}/decline", json={"reason": "<b>Fully booked</b>"}, headers=h)
        assert r.status_code == 200
        assert "Reason: &lt;b&gt;Fully booked&lt;/b&gt;" in outbox["email"][0]["html"]
