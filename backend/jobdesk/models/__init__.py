from jobdesk.models.tenant import Tenant, User
from jobdesk.models.contact import Contact
from jobdesk.models.service import Service
from jobdesk.models.recurrence import JobRecurrence
from jobdesk.models.job import Job
from jobdesk.models.event import JobEvent

__all__ = ["Tenant", "User", "Contact", "Service", "JobRecurrence", "Job", "JobEvent"]
