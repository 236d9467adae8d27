from datetime import timedelta
from icalendar import Calendar, Event, Alarm

from jobdesk.models.job import Job
from jobdesk.utils.timeutils import parse_iso

ICS_STATUS = {
    "pending-confirmation": "TENTATIVE",
    "scheduled": "CONFIRMED",
    "in-progress": "CONFIRMED",
    "completed": "CONFIRMED",
    "cancelled": "CANCELLED",
}


def new_calendar() -> Calendar:
    cal = Calendar()
    cal.add("prodid", "-//JobDesk//EN")
    cal.add("version", "2.0")
    return cal


def job_event(job: Job) -> Event:
    event = Event()
    summary = job.title
    if job.contact:
        summary += f" - {job.contact.full_name}"
    event.add("uid", f"{job.id}@jobdesk")
    event.add("summary", summary)
    event.add("dtstart", parse_iso(job.start_time))
    event.add("dtend", parse_iso(job.end_time))
    event.add("dtstamp", parse_iso(job.updated_at))
    event.add("status", ICS_STATUS.get(job.status, "CONFIRMED"))
    if job.location:
        event.add("location", job.location)

    description_parts = []
    if job.service:
        description_parts.append(f"Service: {job.service.name}")
    if job.description:
        description_parts.append(job.description)
    if job.notes:
        description_parts.append(f"Notes: {job.notes}")
    if description_parts:
        event.add("description", "\n".join(description_parts))

    # Reminders: day before, hour before
    for delta in [timedelta(days=1), timedelta(hours=1)]:
        alarm = Alarm()
        alarm.add("action", "DISPLAY")
        alarm.add("trigger", -delta)
        alarm.add("description", f"Reminder: {job.title}")
        event.add_component(alarm)
    return event


def generate_jobs_ics(jobs: list[Job]) -> bytes:
    """One VEVENT per scheduled job; unscheduled jobs are skipped."""
    cal = new_calendar()
    for job in jobs:
        if job.to_be_scheduled or not job.start_time:
            continue
        cal.add_component(job_event(job))
    return cal.to_ical()
