from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_path: Path = Path.home() / "JobDesk"
    api_prefix: str = "/api/v1"
    cors_origins: str = "http://127.0.0.1:5173,http://localhost:5173"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    session_ttl_seconds: int = 8 * 3600

    # Recurrence expansion limits
    max_occurrences: int = 50
    recurrence_horizon_days: int = 365

    # Booking defaults, used when a service's availability omits them
    default_timezone_offset: int = -8  # hours from UTC
    default_advance_booking_days: int = 30
    public_app_url: str = "http://localhost:5173"

    # Outbound notifications; senders skip silently when unset
    resend_api_key: str | None = None
    email_from_address: str = "JobDesk <bookings@jobdesk.local>"
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None

    @property
    def db_path(self) -> Path:
        return self.data_path / "db.sqlite"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_prefix": "JOBDESK_"}


settings = Settings()
