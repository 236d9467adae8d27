from enum import Enum


class Resource(str, Enum):
    AUTH = "auth"
    CONTACTS = "contacts"
    SERVICES = "services"
    BOOKING = "booking"
    JOBS = "jobs"
    EVENTS = "events"
    CALENDAR = "calendar"
