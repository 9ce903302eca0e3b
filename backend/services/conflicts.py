"""Rejecting competing and outstanding consultation requests.

Each rejection is committed on its own. A failure on one row is logged and
counted, and the remaining rows are still attempted.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import time_utils
from backend.core.errors import SchedulingError
from backend.core.statuses import ConsultationStatus, ensure_transition
from backend.models.consultation import Consultation
from backend.services.notifications import NotificationDispatcher, NotificationEvent, notify

logger = logging.getLogger(__name__)

BULK_REJECTION_REASON = (
    'We regret to inform you that the counselor is currently unable to accommodate consultation '
    'requests due to unforeseen circumstances. We apologize for any inconvenience and encourage you '
    'to book with another available counselor or try again at a later time.'
)


@dataclass
class BulkResult:
    succeeded: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


def cascade_reason(consultation: Consultation) -> str:
    slot_time = time_utils.to_display(time_utils.to_minutes(consultation.time))
    return (
        'This time slot has been booked by another student. The counselor has already accepted '
        f'a consultation for {consultation.date.isoformat()} at {slot_time}.'
    )


def reject_one(
    db: Session,
    consultation: Consultation,
    reason: str | None,
    notifier: NotificationDispatcher | None = None,
) -> Consultation:
    ensure_transition(consultation.status, ConsultationStatus.REJECTED)

    consultation.status = ConsultationStatus.REJECTED
    consultation.video_link = None
    if reason:
        consultation.rejection_reason = reason

    db.commit()
    db.refresh(consultation)
    notify(notifier, consultation.id, NotificationEvent.REJECTED)
    return consultation


def reject_each(
    db: Session,
    consultations: Iterable[Consultation],
    reason: str,
    notifier: NotificationDispatcher | None = None,
) -> BulkResult:
    result = BulkResult()
    for consultation in consultations:
        consultation_id = consultation.id
        try:
            reject_one(db, consultation, reason, notifier)
        except (SQLAlchemyError, SchedulingError):
            db.rollback()
            logger.exception('Failed to reject consultation %s', consultation_id)
            result.failed.append(consultation_id)
        else:
            result.succeeded.append(consultation_id)
    return result


def find_competing_requests(db: Session, accepted: Consultation) -> list[Consultation]:
    return db.query(Consultation).filter(
        Consultation.counselor_id == accepted.counselor_id,
        Consultation.date == accepted.date,
        Consultation.time == accepted.time,
        Consultation.status == ConsultationStatus.PENDING,
        Consultation.id != accepted.id,
    ).order_by(Consultation.id.asc()).all()


def cascade_reject_competing(
    db: Session,
    accepted: Consultation,
    notifier: NotificationDispatcher | None = None,
) -> BulkResult:
    competitors = find_competing_requests(db, accepted)
    if not competitors:
        return BulkResult()

    logger.info('Rejecting %d request(s) competing with consultation %s', len(competitors), accepted.id)
    result = reject_each(db, competitors, cascade_reason(accepted), notifier)
    if result.failed:
        logger.warning(
            'Cascade for consultation %s left %d competing request(s) pending',
            accepted.id,
            result.failure_count,
        )
    return result


def reject_all_pending(
    db: Session,
    counselor_id: int,
    notifier: NotificationDispatcher | None = None,
    reason: str = BULK_REJECTION_REASON,
) -> BulkResult:
    pending = db.query(Consultation).filter(
        Consultation.counselor_id == counselor_id,
        Consultation.status == ConsultationStatus.PENDING,
    ).order_by(Consultation.id.asc()).all()

    result = reject_each(db, pending, reason, notifier)
    logger.info(
        'Bulk rejection for counselor %s: %d rejected, %d failed',
        counselor_id,
        result.success_count,
        result.failure_count,
    )
    return result
