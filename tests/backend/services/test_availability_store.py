from datetime import date, datetime, time

import pytest

from backend.core.errors import InvalidTimeWindow, SlotAlreadyExists, SlotNotDeletable, SlotNotFound
from backend.models.availability import Availability
from backend.services import availability_store

NOW = datetime(2026, 1, 5, 7, 45)


def test_publish_availability_creates_todays_slots(db, counselor) -> None:
    result = availability_store.publish_availability(db, counselor.id, '8:00 AM', '11:00 AM', NOW)

    stored = db.query(Availability).order_by(Availability.start_time).all()
    assert [(slot.start_time, slot.end_time) for slot in stored] == [
        (time(8, 0), time(9, 0)),
        (time(9, 30), time(10, 30)),
    ]
    assert all(slot.date == date(2026, 1, 5) for slot in stored)
    assert all(slot.is_booked is False for slot in stored)
    assert [slot.id for slot in result.slots] == [slot.id for slot in stored]


def test_publishing_the_same_window_twice_reports_existing_slots(db, counselor) -> None:
    availability_store.publish_availability(db, counselor.id, '8:00 AM', '11:00 AM', NOW)

    with pytest.raises(SlotAlreadyExists):
        availability_store.publish_availability(db, counselor.id, '9:30 AM', '12:00 PM', NOW)

    assert db.query(Availability).count() == 2


def test_publish_rejects_window_whose_only_slot_has_started(db, counselor) -> None:
    with pytest.raises(InvalidTimeWindow):
        availability_store.publish_availability(
            db, counselor.id, '9:00 AM', '11:00 AM', datetime(2026, 1, 5, 9, 30, 30)
        )

    assert db.query(Availability).count() == 0


def test_list_bookable_slots_hides_booked_and_elapsed_slots(db, counselor, make_user, make_slot) -> None:
    other = make_user('other@hinahon.edu')
    make_slot(counselor.id, start=time(7, 0))
    open_slot = make_slot(counselor.id, start=time(9, 0))
    make_slot(counselor.id, start=time(11, 0), is_booked=True)
    tomorrow = make_slot(counselor.id, start=time(8, 0), day=date(2026, 1, 6))
    make_slot(counselor.id, start=time(9, 0), day=date(2026, 1, 4))
    other_slot = make_slot(other.id, start=time(10, 0))

    slots = availability_store.list_bookable_slots(db, NOW)
    mine = availability_store.list_bookable_slots(db, NOW, counselor_id=counselor.id)

    assert [slot.id for slot in slots] == [open_slot.id, other_slot.id, tomorrow.id]
    assert [slot.id for slot in mine] == [open_slot.id, tomorrow.id]


def test_list_slots_filters(db, counselor, make_slot) -> None:
    booked = make_slot(counselor.id, start=time(9, 0), is_booked=True)
    make_slot(counselor.id, start=time(11, 0))

    assert availability_store.list_slots(db, counselor_id=counselor.id, is_booked=True) == [booked]
    assert len(availability_store.list_slots(db, day=date(2026, 1, 5))) == 2
    assert availability_store.list_slots(db, day=date(2026, 1, 6)) == []


def test_reserve_slot_is_a_conditional_write(db, counselor, make_slot) -> None:
    slot = make_slot(counselor.id)

    assert availability_store.reserve_slot(db, slot.id, NOW) is True
    assert availability_store.reserve_slot(db, slot.id, NOW) is False

    db.refresh(slot)
    assert slot.is_booked is True
    assert slot.booked_at == NOW


def test_release_slot_undoes_a_reservation(db, counselor, make_slot) -> None:
    slot = make_slot(counselor.id, is_booked=True, booked_at=NOW)

    assert availability_store.release_slot(db, slot.id) is True
    assert availability_store.release_slot(db, slot.id) is False

    db.refresh(slot)
    assert slot.is_booked is False
    assert slot.booked_at is None


def test_delete_slot_removes_unbooked_slot(db, counselor, make_slot) -> None:
    slot_id = make_slot(counselor.id).id

    availability_store.delete_slot(db, slot_id, counselor.id)

    assert availability_store.get_slot(db, slot_id) is None


def test_delete_slot_refuses_booked_slot(db, counselor, make_slot) -> None:
    slot = make_slot(counselor.id, is_booked=True)

    with pytest.raises(SlotNotDeletable):
        availability_store.delete_slot(db, slot.id, counselor.id)

    assert availability_store.get_slot(db, slot.id) is not None


def test_delete_slot_reports_missing_or_foreign_slot(db, counselor, make_user, make_slot) -> None:
    other = make_user('other@hinahon.edu')
    foreign = make_slot(other.id)

    with pytest.raises(SlotNotFound):
        availability_store.delete_slot(db, 999, counselor.id)
    with pytest.raises(SlotNotFound):
        availability_store.delete_slot(db, foreign.id, counselor.id)

    assert availability_store.get_slot(db, foreign.id) is not None


def test_clear_unbooked_slots_keeps_booked_and_other_days(db, counselor, make_slot) -> None:
    make_slot(counselor.id, start=time(8, 0))
    make_slot(counselor.id, start=time(9, 30))
    booked = make_slot(counselor.id, start=time(11, 0), is_booked=True)
    tomorrow = make_slot(counselor.id, start=time(8, 0), day=date(2026, 1, 6))

    deleted = availability_store.clear_unbooked_slots(db, counselor.id, date(2026, 1, 5))

    assert deleted == 2
    assert {slot.id for slot in db.query(Availability).all()} == {booked.id, tomorrow.id}


def test_purge_expired_slots_removes_only_started_unbooked_slots(db, counselor, make_slot) -> None:
    make_slot(counselor.id, start=time(15, 0), day=date(2026, 1, 4))
    make_slot(counselor.id, start=time(7, 0))
    started_booked = make_slot(counselor.id, start=time(7, 30), is_booked=True)
    upcoming = make_slot(counselor.id, start=time(9, 0))

    purged = availability_store.purge_expired_slots(db, NOW)

    remaining = {slot.id for slot in db.query(Availability).all()}
    assert purged == 2
    assert remaining == {started_booked.id, upcoming.id}
