from sqlalchemy import Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from jobdesk.database import Base


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Text, primary_key=True)
    tenant_id = Column(Text, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False, default="")
    email = Column(Text)
    phone = Column(Text)
    company = Column(Text)
    address = Column(Text)
    notes = Column(Text)
    notification_preference = Column(Text, nullable=False, default="both")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    jobs = relationship("Job", back_populates="contact")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()
