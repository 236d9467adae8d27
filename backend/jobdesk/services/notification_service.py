"""Outbound booking notifications over email (Resend) and SMS (Twilio).

Senders are fire-and-forget: they run as background tasks after the booking
transaction has committed, and a failed send is logged, never raised.
"""
import logging
import re
from html import escape
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import httpx
import resend

from jobdesk.config import settings
from jobdesk.models.job import Job
from jobdesk.utils.timeutils import parse_iso

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


@dataclass
class BookingNotice:
    """Everything a notification needs, detached from the DB session."""

    company_name: str
    service_name: str
    client_name: str
    client_email: str | None
    client_phone: str | None
    preference: str
    start_time: datetime | None
    end_time: datetime | None
    timezone_offset: float
    job_id: str
    location: str | None = None
    reason: str | None = None
    occurrence_count: int = 1
    owner_emails: list[str] = field(default_factory=list)


def build_notice(job: Job, company_name: str, owner_emails: list[str] | None = None,
                 occurrence_count: int = 1, reason: str | None = None) -> BookingNotice:
    service = job.service
    contact = job.contact
    offset = settings.default_timezone_offset
    if service and service.availability and service.availability.get("timezone_offset") is not None:
        offset = service.availability["timezone_offset"]
    return BookingNotice(
        company_name=company_name,
        service_name=service.name if service else job.title,
        client_name=contact.full_name,
        client_email=contact.email,
        client_phone=contact.phone,
        preference=contact.notification_preference,
        start_time=parse_iso(job.start_time),
        end_time=parse_iso(job.end_time),
        timezone_offset=offset,
        job_id=job.id,
        location=job.location,
        reason=reason,
        occurrence_count=occurrence_count,
        owner_emails=owner_emails or [],
    )


# ---- channel routing --------------------------------------------------------

def should_send_email(preference: str | None) -> bool:
    return preference in (None, "", "email", "both")


def should_send_sms(preference: str | None) -> bool:
    return preference in (None, "", "sms", "both")


def normalize_phone(phone: str) -> str:
    """Best-effort E.164; bare 10-digit numbers are taken as North American."""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return phone if phone.startswith("+") else f"+{digits}"


def _local_when(notice: BookingNotice) -> str:
    if notice.start_time is None:
        return "a time to be confirmed"
    local = notice.start_time + timedelta(hours=notice.timezone_offset)
    return local.strftime("%A, %B %d, %Y at %I:%M %p").replace(" 0", " ")


# ---- senders ----------------------------------------------------------------

def send_email(to: str | list[str], subject: str, html: str) -> bool:
    if not settings.resend_api_key:
        logger.warning("Email not configured, skipping '%s' to %s", subject, to)
        return False

    recipients = [to] if isinstance(to, str) else to
    try:
        resend.api_key = settings.resend_api_key
        response = resend.Emails.send({
            "from": settings.email_from_address,
            "to": recipients,
            "subject": subject,
            "html": html,
        })
        logger.info("Email '%s' sent to %s: %s", subject, recipients, response)
        return True
    except Exception as exc:
        logger.error("Email '%s' to %s failed: %s", subject, recipients, exc)
        return False


def send_sms(to: str, body: str) -> bool:
    sid, token, sender = settings.twilio_account_sid, settings.twilio_auth_token, settings.twilio_phone_number
    if not (sid and token and sender):
        logger.warning("SMS not configured, skipping message to %s", to)
        return False

    to_phone = normalize_phone(to)
    try:
        response = httpx.post(
            TWILIO_MESSAGES_URL.format(sid=sid),
            auth=(sid, token),
            data={"To": to_phone, "Body": body, "From": sender},
            timeout=10.0,
        )
    except httpx.HTTPError as exc:
        logger.error("SMS to %s failed: %s", to_phone, exc)
        return False

    if response.status_code in (200, 201):
        logger.info("SMS sent to %s (SID: %s)", to_phone, response.json().get("sid"))
        return True
    logger.error("SMS to %s rejected by Twilio (%s): %s", to_phone, response.status_code, response.text)
    return False


def _notify_client(notice: BookingNotice, subject: str, html: str, sms_body: str):
    if notice.client_email and should_send_email(notice.preference):
        send_email(notice.client_email, subject, html)
    if notice.client_phone and should_send_sms(notice.preference):
        send_sms(notice.client_phone, sms_body)


# ---- booking messages -------------------------------------------------------

def notify_booking_received(notice: BookingNotice):
    """Client: the request is pending the owner's confirmation."""
    when = _local_when(notice)
    subject = f"Booking request received - {notice.service_name}"
    html = (
        f"<p>Hi {escape(notice.client_name)},</p>"
        f"<p>We received your request for <strong>{escape(notice.service_name)}</strong> on {when}. "
        f"{escape(notice.company_name)} will confirm it shortly.</p>"
    )
    sms = f"{notice.company_name}: Your {notice.service_name} request for {when} is pending. We'll confirm soon."
    _notify_client(notice, subject, html, sms)


def notify_booking_confirmed(notice: BookingNotice):
    when = _local_when(notice)
    subject = f"Your booking is confirmed - {notice.service_name}"
    series = ""
    if notice.occurrence_count > 1:
        series = f" This is the first of {notice.occurrence_count} recurring appointments."
    html = (
        f"<p>Hi {escape(notice.client_name)},</p>"
        f"<p>Your <strong>{escape(notice.service_name)}</strong> appointment is confirmed for {when}.{series}</p>"
    )
    if notice.location:
        html += f"<p>Location: {escape(notice.location)}</p>"
    sms = f"{notice.company_name}: Your {notice.service_name} appointment is confirmed for {when}."
    _notify_client(notice, subject, html, sms)


def notify_booking_declined(notice: BookingNotice):
    subject = f"Booking request declined - {notice.service_name}"
    html = (
        f"<p>Hi {escape(notice.client_name)},</p>"
        f"<p>Unfortunately your {escape(notice.service_name)} request could not be confirmed.</p>"
    )
    if notice.reason:
        html += f"<p>Reason: {escape(notice.reason)}</p>"
    html += "<p>Please contact us to reschedule.</p>"
    sms = (
        f"{notice.company_name}: Your {notice.service_name} appointment request could not be "
        "confirmed. Please contact us to reschedule."
    )
    _notify_client(notice, subject, html, sms)


def notify_owner_new_booking(notice: BookingNotice, pending: bool):
    if not notice.owner_emails:
        logger.warning("No owner email on file for booking %s", notice.job_id)
        return
    subject = (
        f"New booking request for {notice.service_name}" if pending
        else f"New booking for {notice.service_name}"
    )
    html = (
        f"<p>{escape(notice.client_name)} booked <strong>{escape(notice.service_name)}</strong> for {_local_when(notice)}.</p>"
        f"<p>Email: {escape(notice.client_email or '-')}<br>Phone: {escape(notice.client_phone or '-')}</p>"
    )
    if pending:
        html += f'<p><a href="{settings.public_app_url}/jobs/{notice.job_id}">Review and confirm</a></p>'
    send_email(notice.owner_emails, subject, html)
