from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, Text
from jobdesk.database import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(Text, primary_key=True)
    tenant_id = Column(Text, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text)
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float)
    is_active = Column(Boolean, nullable=False, default=True)
    availability = Column(JSON(none_as_null=True))
    booking_settings = Column(JSON(none_as_null=True))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
