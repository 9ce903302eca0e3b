from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from backend.core.errors import BookingFailed, SlotAlreadyBooked, SlotExpired, SlotNotFound
from backend.core.statuses import ConsultationStatus
from backend.database import Base
from backend.models.availability import Availability
from backend.models.consultation import Consultation
from backend.services import availability_store, booking

NOW = datetime(2026, 1, 5, 8, 0)


def test_book_slot_reserves_slot_and_creates_pending_consultation(db, counselor, student, make_slot, notifier) -> None:
    slot = make_slot(counselor.id, start=time(10, 0))

    consultation = booking.book_slot(db, slot.id, student.id, NOW, reason='worried', notifier=notifier)

    db.refresh(slot)
    assert slot.is_booked is True
    assert slot.booked_at == NOW
    assert consultation.status is ConsultationStatus.PENDING
    assert consultation.availability_id == slot.id
    assert consultation.counselor_id == counselor.id
    assert consultation.student_id == student.id
    assert (consultation.date, consultation.time) == (date(2026, 1, 5), time(10, 0))
    assert consultation.reason == 'worried'
    assert notifier.events == [(consultation.id, 'booked')]


def test_book_slot_fails_for_missing_slot(db, student) -> None:
    with pytest.raises(SlotNotFound):
        booking.book_slot(db, 404, student.id, NOW)


def test_book_slot_fails_for_elapsed_slot(db, counselor, student, make_slot) -> None:
    slot = make_slot(counselor.id, start=time(7, 0))

    with pytest.raises(SlotExpired):
        booking.book_slot(db, slot.id, student.id, NOW)

    assert db.query(Consultation).count() == 0


def test_book_slot_fails_for_booked_slot(db, counselor, student, make_slot) -> None:
    slot = make_slot(counselor.id, is_booked=True)

    with pytest.raises(SlotAlreadyBooked):
        booking.book_slot(db, slot.id, student.id, NOW)

    assert db.query(Consultation).count() == 0


def test_book_slot_releases_reservation_when_consultation_insert_fails(
    db,
    counselor,
    student,
    make_slot,
    notifier,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    slot = make_slot(counselor.id)

    def failing_insert(*args, **kwargs):
        raise SQLAlchemyError('insert failed')

    monkeypatch.setattr(booking, 'create_consultation_record', failing_insert)

    with pytest.raises(BookingFailed):
        booking.book_slot(db, slot.id, student.id, NOW, notifier=notifier)

    db.refresh(slot)
    assert slot.is_booked is False
    assert slot.booked_at is None
    assert notifier.events == []


def test_notification_failure_does_not_undo_booking(db, counselor, student, make_slot) -> None:
    class BrokenNotifier:
        def dispatch(self, consultation_id, event) -> None:
            raise RuntimeError('mailer down')

    slot = make_slot(counselor.id)

    consultation = booking.book_slot(db, slot.id, student.id, NOW, notifier=BrokenNotifier())

    assert consultation.status is ConsultationStatus.PENDING
    db.refresh(slot)
    assert slot.is_booked is True


def test_concurrent_bookings_only_one_wins(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = session_factory()
    slot = Availability(counselor_id=1, date=date(2026, 1, 5), start_time=time(10, 0), end_time=time(11, 0))
    setup.add(slot)
    setup.commit()
    slot_id = slot.id
    setup.close()

    first = session_factory()
    second = session_factory()
    try:
        # Both students see the slot as open before either one reserves it.
        assert availability_store.get_slot(first, slot_id).is_booked is False
        assert availability_store.get_slot(second, slot_id).is_booked is False

        winner = booking.book_slot(first, slot_id, student_id=2, now=NOW)
        with pytest.raises(SlotAlreadyBooked):
            booking.book_slot(second, slot_id, student_id=3, now=NOW)
    finally:
        first.close()
        second.close()

    check = session_factory()
    try:
        stored_slot = check.query(Availability).filter(Availability.id == slot_id).one()
        consultations = check.query(Consultation).filter(Consultation.availability_id == slot_id).all()
        assert stored_slot.is_booked is True
        assert [consultation.id for consultation in consultations] == [winner.id]
        assert consultations[0].student_id == 2
    finally:
        check.close()
        engine.dispose()


def test_reconcile_orphaned_reservations(db, counselor, student, make_slot, make_consultation) -> None:
    stale = NOW - timedelta(minutes=10)
    orphan = make_slot(counselor.id, start=time(9, 0), is_booked=True, booked_at=stale)
    referenced = make_slot(counselor.id, start=time(10, 30), is_booked=True, booked_at=stale)
    make_consultation(student.id, counselor.id, at=time(10, 30), availability_id=referenced.id)
    fresh = make_slot(counselor.id, start=time(12, 0), is_booked=True, booked_at=NOW - timedelta(seconds=5))

    released = booking.reconcile_orphaned_reservations(db, NOW, older_than=timedelta(minutes=2))

    assert released == 1
    for slot in (orphan, referenced, fresh):
        db.refresh(slot)
    assert orphan.is_booked is False
    assert referenced.is_booked is True
    assert fresh.is_booked is True
