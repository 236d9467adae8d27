from sqlalchemy import JSON, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from jobdesk.database import Base


class JobRecurrence(Base):
    __tablename__ = "job_recurrences"

    id = Column(Text, primary_key=True)
    tenant_id = Column(Text, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    contact_id = Column(Text, ForeignKey("contacts.id", ondelete="RESTRICT"), nullable=False)
    service_id = Column(Text, ForeignKey("services.id", ondelete="SET NULL"))
    title = Column(Text, nullable=False)
    frequency = Column(Text, nullable=False)
    interval = Column(Integer, nullable=False, default=1)
    count = Column(Integer)
    until_date = Column(Text)
    days_of_week = Column(JSON(none_as_null=True))
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    jobs = relationship("Job", back_populates="recurrence")
