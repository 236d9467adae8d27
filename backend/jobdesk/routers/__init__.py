from fastapi import APIRouter

from jobdesk.resources import Resource
from jobdesk.routers import auth, booking, calendar, contacts, events, jobs, services

# Handler table: every resource's routers, mounted under the API prefix
ROUTERS: dict[Resource, list[APIRouter]] = {
    Resource.AUTH: [auth.router],
    Resource.CONTACTS: [contacts.router],
    Resource.SERVICES: [services.router],
    Resource.BOOKING: [booking.router],
    Resource.JOBS: [jobs.router],
    Resource.EVENTS: [events.router],
    Resource.CALENDAR: [calendar.router],
}
