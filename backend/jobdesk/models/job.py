from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
from jobdesk.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    tenant_id = Column(Text, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    contact_id = Column(Text, ForeignKey("contacts.id", ondelete="RESTRICT"), nullable=False)
    service_id = Column(Text, ForeignKey("services.id", ondelete="SET NULL"))
    recurrence_id = Column(Text, ForeignKey("job_recurrences.id", ondelete="SET NULL"))
    start_time = Column(Text)
    end_time = Column(Text)
    to_be_scheduled = Column(Boolean, nullable=False, default=False)
    status = Column(Text, nullable=False, default="scheduled")
    location = Column(Text)
    price = Column(Float)
    notes = Column(Text)
    breaks = Column(JSON(none_as_null=True))
    assigned_to = Column(JSON(none_as_null=True))
    created_by_id = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    archived_at = Column(Text)
    deleted_at = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    contact = relationship("Contact", back_populates="jobs")
    service = relationship("Service")
    recurrence = relationship("JobRecurrence", back_populates="jobs")
    events = relationship("JobEvent", back_populates="job", cascade="all, delete-orphan")
