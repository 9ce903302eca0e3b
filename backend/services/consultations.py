"""Counselor-driven consultation transitions and consultation reads."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from backend.core import temporal
from backend.core.errors import ConsultationNotFound, NotConsultationOwner, SlotAlreadyBooked
from backend.core.statuses import ConsultationStatus, ensure_transition
from backend.models.consultation import Consultation
from backend.services import availability_store
from backend.services.conflicts import BulkResult, cascade_reject_competing, reject_one
from backend.services.notifications import NotificationDispatcher, NotificationEvent, notify
from backend.services.video_rooms import VideoRoomProvisioner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcceptResult:
    consultation: Consultation
    room_url: str
    cascade: BulkResult


def get_consultation(db: Session, consultation_id: int) -> Consultation:
    consultation = db.query(Consultation).filter(Consultation.id == consultation_id).first()
    if consultation is None:
        raise ConsultationNotFound()
    return consultation


def get_owned_consultation(db: Session, consultation_id: int, counselor_id: int) -> Consultation:
    consultation = get_consultation(db, consultation_id)
    if consultation.counselor_id != counselor_id:
        raise NotConsultationOwner()
    return consultation


def list_consultations(
    db: Session,
    student_id: int | None = None,
    counselor_id: int | None = None,
    statuses: list[ConsultationStatus] | None = None,
) -> list[Consultation]:
    query = db.query(Consultation)
    if student_id is not None:
        query = query.filter(Consultation.student_id == student_id)
    if counselor_id is not None:
        query = query.filter(Consultation.counselor_id == counselor_id)
    if statuses:
        query = query.filter(Consultation.status.in_(statuses))
    return query.order_by(Consultation.date.asc(), Consultation.time.asc(), Consultation.id.asc()).all()


def has_other_acceptance(db: Session, consultation: Consultation) -> bool:
    return db.query(Consultation.id).filter(
        Consultation.counselor_id == consultation.counselor_id,
        Consultation.date == consultation.date,
        Consultation.time == consultation.time,
        Consultation.status == ConsultationStatus.ACCEPTED,
        Consultation.id != consultation.id,
    ).first() is not None


def accept_consultation(
    db: Session,
    consultation_id: int,
    counselor_id: int,
    provisioner: VideoRoomProvisioner,
    now: datetime,
    notifier: NotificationDispatcher | None = None,
) -> AcceptResult:
    consultation = get_owned_consultation(db, consultation_id, counselor_id)
    ensure_transition(consultation.status, ConsultationStatus.ACCEPTED)

    if has_other_acceptance(db, consultation):
        raise SlotAlreadyBooked('Another consultation has already been accepted for this time slot.')

    # End the read transaction before the provider call. Nothing is written
    # until the room exists, so a failure leaves the request pending.
    db.commit()
    room_url = provisioner.create_room(consultation.id)

    consultation.status = ConsultationStatus.ACCEPTED
    consultation.video_link = room_url
    db.commit()
    db.refresh(consultation)
    logger.info('Consultation %s accepted by counselor %s', consultation.id, counselor_id)

    if consultation.availability_id is not None:
        availability_store.reserve_slot(db, consultation.availability_id, now)

    cascade = cascade_reject_competing(db, consultation, notifier)
    notify(notifier, consultation.id, NotificationEvent.ACCEPTED)
    return AcceptResult(consultation=consultation, room_url=room_url, cascade=cascade)


def reject_consultation(
    db: Session,
    consultation_id: int,
    counselor_id: int,
    reason: str | None = None,
    notifier: NotificationDispatcher | None = None,
) -> Consultation:
    consultation = get_owned_consultation(db, consultation_id, counselor_id)
    consultation = reject_one(db, consultation, reason, notifier)
    logger.info('Consultation %s rejected by counselor %s', consultation.id, counselor_id)
    return consultation


def end_meeting(db: Session, consultation_id: int, counselor_id: int) -> Consultation:
    consultation = get_owned_consultation(db, consultation_id, counselor_id)
    ensure_transition(consultation.status, ConsultationStatus.COMPLETED)

    consultation.status = ConsultationStatus.COMPLETED
    consultation.meeting_ended = True
    consultation.video_link = None
    db.commit()
    db.refresh(consultation)
    logger.info('Meeting for consultation %s ended', consultation.id)
    return consultation


def save_notes(db: Session, consultation_id: int, counselor_id: int, notes: str | None) -> Consultation:
    consultation = get_owned_consultation(db, consultation_id, counselor_id)
    consultation.counselor_notes = notes
    db.commit()
    db.refresh(consultation)
    return consultation


def session_access(consultation: Consultation, now: datetime) -> temporal.SessionAccess | None:
    """Join-link access for an accepted consultation, or ``None`` when there is no live link."""
    if consultation.status != ConsultationStatus.ACCEPTED or consultation.meeting_ended:
        return None
    if not consultation.video_link:
        return None
    return temporal.describe_session(consultation.date, consultation.time, now)
