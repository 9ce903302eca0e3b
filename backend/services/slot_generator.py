"""Turn a counselor's working window into bookable consultation slots.

Slots are one hour long with a thirty minute break between them and are
generated for the day of ``now`` only. A start that has already passed is
moved up to the next half-hour boundary, and any candidate that is not
strictly in the future is dropped and counted in ``SlotPlan.skipped``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time

from backend.core import time_utils
from backend.core.errors import InvalidTimeWindow

CONSULTATION_MINUTES = 60
BREAK_MINUTES = 30
BOUNDARY_MINUTES = 30


@dataclass(frozen=True)
class CandidateSlot:
    start: int
    end: int

    @property
    def start_time(self) -> time:
        return time_utils.minutes_to_time(self.start)

    @property
    def end_time(self) -> time:
        return time_utils.minutes_to_time(self.end)

    @property
    def start_display(self) -> str:
        return time_utils.to_display(self.start)

    @property
    def end_display(self) -> str:
        return time_utils.to_display(self.end)


@dataclass(frozen=True)
class SlotPlan:
    day: date
    requested_start: int
    effective_start: int
    end: int
    slots: list[CandidateSlot] = field(default_factory=list)
    skipped: int = 0

    @property
    def was_adjusted(self) -> bool:
        return self.effective_start != self.requested_start

    @property
    def message(self) -> str:
        if not self.slots:
            return 'All time slots in this range have already passed. Please select a future time range.'
        if self.was_adjusted:
            message = (
                f'Start time adjusted from {time_utils.to_display(self.requested_start)} '
                f'to {time_utils.to_display(self.effective_start)} (next available slot). '
                f'Will create {len(self.slots)} slot(s).'
            )
        else:
            message = f'Will create {len(self.slots)} consultation slot(s).'
        if self.skipped:
            message += f' {self.skipped} past slot(s) will be skipped.'
        return message


def _as_minutes(value: str | time | int) -> int:
    if isinstance(value, int):
        return value
    try:
        return time_utils.to_minutes(value)
    except ValueError as exc:
        raise InvalidTimeWindow(f'Unrecognized time: {value}.') from exc


def next_boundary(now: datetime) -> int:
    return time_utils.round_up_to_boundary(now.hour * 60 + now.minute, BOUNDARY_MINUTES)


def expected_slot_count(start: int, end: int) -> int:
    span = end - start - CONSULTATION_MINUTES
    if span < 0:
        return 0
    return span // (CONSULTATION_MINUTES + BREAK_MINUTES) + 1


def generate_slots(start: str | time | int, end: str | time | int, now: datetime) -> SlotPlan:
    requested_start = _as_minutes(start)
    end_minutes = _as_minutes(end)

    if not (
        time_utils.is_on_boundary(requested_start, BOUNDARY_MINUTES)
        and time_utils.is_on_boundary(end_minutes, BOUNDARY_MINUTES)
    ):
        raise InvalidTimeWindow('Times must be on 30-minute boundaries (e.g., 7:00, 7:30, 8:00).')

    effective_start = max(requested_start, next_boundary(now))

    if end_minutes <= effective_start:
        raise InvalidTimeWindow('End time must be after the current/selected start time.')

    if expected_slot_count(effective_start, end_minutes) == 0:
        raise InvalidTimeWindow('Time range too short. Minimum 1 hour needed for one consultation slot.')

    slots: list[CandidateSlot] = []
    skipped = 0
    cursor = effective_start
    while cursor + CONSULTATION_MINUTES <= end_minutes:
        candidate = CandidateSlot(start=cursor, end=cursor + CONSULTATION_MINUTES)
        if datetime.combine(now.date(), candidate.start_time) > now:
            slots.append(candidate)
        else:
            skipped += 1
        cursor += CONSULTATION_MINUTES + BREAK_MINUTES

    return SlotPlan(
        day=now.date(),
        requested_start=requested_start,
        effective_start=effective_start,
        end=end_minutes,
        slots=slots,
        skipped=skipped,
    )
