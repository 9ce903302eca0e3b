"""Time-dependent lifecycle classification for slots and consultations.

Everything here is a pure function of the scheduled date/time and ``now``.
Results must be recomputed on every read: nothing stored changes when the
clock moves forward.
"""

import enum
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, TypeVar

from backend.core.statuses import ConsultationStatus

VIDEO_SESSION_WINDOW = timedelta(hours=1)
REQUEST_GRACE_PERIOD = timedelta(minutes=10)
STARTING_SOON_WINDOW = timedelta(minutes=15)

SlotT = TypeVar('SlotT')


class SessionPhase(str, enum.Enum):
    NOT_STARTED = 'not_started'
    ACTIVE = 'active'
    EXPIRED = 'expired'


@dataclass(frozen=True)
class SessionAccess:
    phase: SessionPhase
    can_access: bool
    message: str
    minutes_until_start: int | None
    minutes_until_expiry: int | None


def scheduled_at(day: date, at: time) -> datetime:
    return datetime.combine(day, at)


def classify_session(day: date, at: time, now: datetime) -> SessionPhase:
    start = scheduled_at(day, at)
    if now < start:
        return SessionPhase.NOT_STARTED
    if now > start + VIDEO_SESSION_WINDOW:
        return SessionPhase.EXPIRED
    return SessionPhase.ACTIVE


def grace_deadline(day: date, at: time) -> datetime:
    return scheduled_at(day, at) + REQUEST_GRACE_PERIOD


def is_grace_expired(day: date, at: time, now: datetime) -> bool:
    return now > grace_deadline(day, at)


def is_slot_expired(day: date, at: time, now: datetime) -> bool:
    return now > scheduled_at(day, at)


def is_starting_soon(day: date, at: time, now: datetime) -> bool:
    remaining = scheduled_at(day, at) - now
    return timedelta(0) < remaining <= STARTING_SOON_WINDOW


def filter_open_slots(slots: Iterable[SlotT], now: datetime) -> list[SlotT]:
    """Drop slots whose start has passed. Slots need ``date`` and ``start_time``."""
    return [slot for slot in slots if not is_slot_expired(slot.date, slot.start_time, now)]


def _ceil_minutes(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / 60)


def format_time_until(delta: timedelta) -> str:
    total_minutes = _ceil_minutes(delta)
    if total_minutes < 60:
        return f"{total_minutes} minute{'' if total_minutes == 1 else 's'}"

    hours, minutes = divmod(total_minutes, 60)
    hours_text = f"{hours} hour{'' if hours == 1 else 's'}"
    if minutes == 0:
        return hours_text
    return f"{hours_text} {minutes} minute{'' if minutes == 1 else 's'}"


def describe_session(day: date, at: time, now: datetime) -> SessionAccess:
    start = scheduled_at(day, at)
    expiry = start + VIDEO_SESSION_WINDOW
    phase = classify_session(day, at, now)

    if phase is SessionPhase.NOT_STARTED:
        return SessionAccess(
            phase=phase,
            can_access=False,
            message=f"Consultation hasn't started yet. Starts in {format_time_until(start - now)}.",
            minutes_until_start=_ceil_minutes(start - now),
            minutes_until_expiry=None,
        )

    if phase is SessionPhase.EXPIRED:
        return SessionAccess(
            phase=phase,
            can_access=False,
            message='This consultation link has expired (1 hour after scheduled time).',
            minutes_until_start=None,
            minutes_until_expiry=0,
        )

    return SessionAccess(
        phase=phase,
        can_access=True,
        message=f'Link expires in {format_time_until(expiry - now)}.',
        minutes_until_start=0,
        minutes_until_expiry=_ceil_minutes(expiry - now),
    )


def effective_status(
    status: ConsultationStatus,
    meeting_ended: bool,
    day: date,
    at: time,
    now: datetime,
) -> ConsultationStatus:
    """Status as it should be presented; an elapsed accepted session reads as completed."""
    status = ConsultationStatus(status)
    if status is ConsultationStatus.ACCEPTED and (
        meeting_ended or classify_session(day, at, now) is SessionPhase.EXPIRED
    ):
        return ConsultationStatus.COMPLETED
    return status


def status_label(status: ConsultationStatus, day: date, at: time, now: datetime) -> str:
    status = ConsultationStatus(status)
    if status is ConsultationStatus.ACCEPTED:
        phase = classify_session(day, at, now)
        return {
            SessionPhase.NOT_STARTED: 'Scheduled',
            SessionPhase.ACTIVE: 'Active Now',
            SessionPhase.EXPIRED: 'Expired',
        }[phase]
    return status.value.capitalize()
