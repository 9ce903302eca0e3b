"""Availability model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Time, UniqueConstraint
from backend.database import Base


class Availability(Base):
    """Represents one bookable consultation slot owned by a counselor."""
    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint("counselor_id", "date", "start_time", name="uq_availability_counselor_slot"),
    )

    id = Column(Integer, primary_key=True)
    counselor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    booked_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
