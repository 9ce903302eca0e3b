"""Reads and writes over availability slot rows.

``reserve_slot`` is the only place a slot flips to booked. It relies on the
database executing ``UPDATE ... WHERE id = :id AND is_booked = false``
atomically, so of two racing bookers exactly one sees a row affected.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core import temporal
from backend.core.errors import InvalidTimeWindow, SlotAlreadyExists, SlotNotDeletable, SlotNotFound
from backend.models.availability import Availability
from backend.services.slot_generator import CandidateSlot, SlotPlan, generate_slots

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    plan: SlotPlan
    slots: list[Availability]


def get_slot(db: Session, slot_id: int) -> Availability | None:
    return db.query(Availability).filter(Availability.id == slot_id).first()


def list_slots(
    db: Session,
    counselor_id: int | None = None,
    day: date | None = None,
    is_booked: bool | None = None,
    from_date: date | None = None,
) -> list[Availability]:
    query = db.query(Availability)
    if counselor_id is not None:
        query = query.filter(Availability.counselor_id == counselor_id)
    if day is not None:
        query = query.filter(Availability.date == day)
    if from_date is not None:
        query = query.filter(Availability.date >= from_date)
    if is_booked is not None:
        query = query.filter(Availability.is_booked.is_(is_booked))
    return query.order_by(Availability.date.asc(), Availability.start_time.asc()).all()


def list_bookable_slots(db: Session, now: datetime, counselor_id: int | None = None) -> list[Availability]:
    slots = list_slots(db, counselor_id=counselor_id, is_booked=False, from_date=now.date())
    return temporal.filter_open_slots(slots, now)


def create_slots(
    db: Session,
    counselor_id: int,
    day: date,
    candidates: Iterable[CandidateSlot],
) -> list[Availability]:
    candidates = list(candidates)
    start_times = [candidate.start_time for candidate in candidates]

    existing = db.query(Availability.id).filter(
        Availability.counselor_id == counselor_id,
        Availability.date == day,
        Availability.start_time.in_(start_times),
    ).first()
    if existing:
        raise SlotAlreadyExists()

    slots = [
        Availability(
            counselor_id=counselor_id,
            date=day,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
            is_booked=False,
        )
        for candidate in candidates
    ]

    try:
        db.add_all(slots)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlotAlreadyExists() from exc

    for slot in slots:
        db.refresh(slot)

    logger.info('Created %d availability slot(s) for counselor %s on %s', len(slots), counselor_id, day)
    return slots


def publish_availability(
    db: Session,
    counselor_id: int,
    start: str,
    end: str,
    now: datetime,
) -> PublishResult:
    plan = generate_slots(start, end, now)
    if not plan.slots:
        raise InvalidTimeWindow(plan.message)

    if plan.skipped:
        logger.info('Skipped %d past time slot(s) for counselor %s', plan.skipped, counselor_id)

    slots = create_slots(db, counselor_id, plan.day, plan.slots)
    return PublishResult(plan=plan, slots=slots)


def reserve_slot(db: Session, slot_id: int, now: datetime) -> bool:
    affected = db.query(Availability).filter(
        Availability.id == slot_id,
        Availability.is_booked.is_(False),
    ).update(
        {Availability.is_booked: True, Availability.booked_at: now},
        synchronize_session=False,
    )
    db.commit()
    return affected == 1


def release_slot(db: Session, slot_id: int) -> bool:
    affected = db.query(Availability).filter(
        Availability.id == slot_id,
        Availability.is_booked.is_(True),
    ).update(
        {Availability.is_booked: False, Availability.booked_at: None},
        synchronize_session=False,
    )
    db.commit()
    return affected == 1


def delete_slot(db: Session, slot_id: int, counselor_id: int) -> None:
    deleted = db.query(Availability).filter(
        Availability.id == slot_id,
        Availability.counselor_id == counselor_id,
        Availability.is_booked.is_(False),
    ).delete(synchronize_session=False)
    db.commit()

    if deleted:
        return

    slot = get_slot(db, slot_id)
    if slot is None or slot.counselor_id != counselor_id:
        raise SlotNotFound('Time slot not found.')
    raise SlotNotDeletable()


def clear_unbooked_slots(db: Session, counselor_id: int, day: date) -> int:
    deleted = db.query(Availability).filter(
        Availability.counselor_id == counselor_id,
        Availability.date == day,
        Availability.is_booked.is_(False),
    ).delete(synchronize_session=False)
    db.commit()
    return deleted


def purge_expired_slots(db: Session, now: datetime, counselor_id: int | None = None) -> int:
    query = db.query(Availability).filter(
        Availability.is_booked.is_(False),
        or_(
            Availability.date < now.date(),
            and_(Availability.date == now.date(), Availability.start_time < now.time()),
        ),
    )
    if counselor_id is not None:
        query = query.filter(Availability.counselor_id == counselor_id)

    deleted = query.delete(synchronize_session=False)
    db.commit()
    return deleted
