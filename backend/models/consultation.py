"""Consultation model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, String, Time
from backend.core.statuses import ConsultationStatus
from backend.database import Base


class Consultation(Base):
    """Represents a student's request for a counselor's slot."""
    __tablename__ = "consultations"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    counselor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    status = Column(
        Enum(
            ConsultationStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=ConsultationStatus.PENDING,
    )
    # Not a foreign key: the slot row may be deleted while the request lives on.
    availability_id = Column(Integer)
    reason = Column(String)
    rejection_reason = Column(String)
    counselor_notes = Column(String)
    video_link = Column(String)
    meeting_ended = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
