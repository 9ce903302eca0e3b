"""Reserve a slot for a student and open a pending consultation on it.

The reservation and the consultation insert are two separate commits. If
the insert fails the slot is released again; if the process dies in
between, ``reconcile_orphaned_reservations`` frees the slot on a later pass.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import temporal
from backend.core.errors import BookingFailed, SlotAlreadyBooked, SlotExpired, SlotNotFound
from backend.core.statuses import ConsultationStatus
from backend.models.availability import Availability
from backend.models.consultation import Consultation
from backend.services import availability_store
from backend.services.notifications import NotificationDispatcher, NotificationEvent, notify

logger = logging.getLogger(__name__)


def create_consultation_record(
    db: Session,
    slot: Availability,
    student_id: int,
    reason: str | None = None,
) -> Consultation:
    consultation = Consultation(
        student_id=student_id,
        counselor_id=slot.counselor_id,
        date=slot.date,
        time=slot.start_time,
        status=ConsultationStatus.PENDING,
        availability_id=slot.id,
        reason=reason,
        meeting_ended=False,
    )
    db.add(consultation)
    db.commit()
    db.refresh(consultation)
    return consultation


def book_slot(
    db: Session,
    slot_id: int,
    student_id: int,
    now: datetime,
    reason: str | None = None,
    notifier: NotificationDispatcher | None = None,
) -> Consultation:
    slot = availability_store.get_slot(db, slot_id)
    if slot is None:
        raise SlotNotFound()

    if temporal.is_slot_expired(slot.date, slot.start_time, now):
        raise SlotExpired()

    if slot.is_booked:
        raise SlotAlreadyBooked()

    if not availability_store.reserve_slot(db, slot_id, now):
        logger.info('Student %s lost the race for slot %s', student_id, slot_id)
        raise SlotAlreadyBooked()

    try:
        consultation = create_consultation_record(db, slot, student_id, reason)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create consultation for slot %s; releasing reservation', slot_id)
        try:
            availability_store.release_slot(db, slot_id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception('Failed to release slot %s after booking failure', slot_id)
        raise BookingFailed() from exc

    logger.info('Consultation %s created for student %s on slot %s', consultation.id, student_id, slot_id)
    notify(notifier, consultation.id, NotificationEvent.BOOKED)
    return consultation


def reconcile_orphaned_reservations(db: Session, now: datetime, older_than: timedelta) -> int:
    """Release booked slots that no consultation references, once they are old enough."""
    referenced = select(Consultation.availability_id).where(Consultation.availability_id.is_not(None))
    orphans = db.query(Availability.id).filter(
        Availability.is_booked.is_(True),
        Availability.booked_at.is_not(None),
        Availability.booked_at < now - older_than,
        Availability.id.not_in(referenced),
    ).all()

    released = 0
    for (slot_id,) in orphans:
        if availability_store.release_slot(db, slot_id):
            released += 1
            logger.warning('Released orphaned reservation on slot %s', slot_id)

    return released
