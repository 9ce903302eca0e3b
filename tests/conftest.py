import os
from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.core.errors import VideoProvisioningError  # noqa: E402
from backend.core.statuses import ConsultationStatus, UserRole  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.availability import Availability  # noqa: E402
from backend.models.consultation import Consultation  # noqa: E402
from backend.models.user import User  # noqa: E402

SLOT_DAY = date(2026, 1, 5)


class FakeProvisioner:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[int] = []

    def create_room(self, consultation_id: int) -> str:
        self.calls.append(consultation_id)
        if self.fail:
            raise VideoProvisioningError('Daily.co API error: 500')
        return f'https://hinahon.daily.co/room-{consultation_id}'


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[int, str]] = []

    def dispatch(self, consultation_id, event) -> None:
        self.events.append((consultation_id, event.value))


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def failing_provisioner() -> FakeProvisioner:
    return FakeProvisioner(fail=True)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: UserRole = UserRole.STUDENT) -> User:
        user = User(email=email, name=email.split('@')[0], role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def counselor(make_user) -> User:
    return make_user('counselor@hinahon.edu', UserRole.COUNSELOR)


@pytest.fixture
def student(make_user) -> User:
    return make_user('student@hinahon.edu', UserRole.STUDENT)


@pytest.fixture
def make_slot(db):
    def _make_slot(
        counselor_id: int,
        start: time = time(10, 0),
        end: time | None = None,
        day: date = SLOT_DAY,
        is_booked: bool = False,
        booked_at: datetime | None = None,
    ) -> Availability:
        slot = Availability(
            counselor_id=counselor_id,
            date=day,
            start_time=start,
            end_time=end or time(start.hour + 1, start.minute),
            is_booked=is_booked,
            booked_at=booked_at,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return _make_slot


@pytest.fixture
def make_consultation(db):
    def _make_consultation(
        student_id: int,
        counselor_id: int,
        at: time = time(10, 0),
        day: date = SLOT_DAY,
        status: ConsultationStatus = ConsultationStatus.PENDING,
        availability_id: int | None = None,
        video_link: str | None = None,
    ) -> Consultation:
        consultation = Consultation(
            student_id=student_id,
            counselor_id=counselor_id,
            date=day,
            time=at,
            status=status,
            availability_id=availability_id,
            video_link=video_link,
            meeting_ended=False,
        )
        db.add(consultation)
        db.commit()
        db.refresh(consultation)
        return consultation

    return _make_consultation
