from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_counselor
from backend.core import temporal, time_utils
from backend.core.errors import SchedulingError
from backend.models.user import User
from backend.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    get_now,
    scheduling_http_error,
)
from backend.services import availability_store
from backend.services.slot_generator import CandidateSlot, SlotPlan, generate_slots

router = APIRouter(tags=['availability'])


class AvailabilityWindowRequest(BaseModel):
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_clock_time(cls, value: str) -> str:
        normalized = value.strip()
        time_utils.to_minutes(normalized)
        return normalized


class CandidateSlotResponse(BaseModel):
    start: str
    end: str
    start_display: str
    end_display: str


class SlotPreviewResponse(BaseModel):
    valid: bool
    message: str
    slots: list[CandidateSlotResponse]
    was_adjusted: bool
    adjusted_start: str | None = None
    skipped: int = 0


class AvailabilitySlotResponse(BaseModel):
    id: int
    counselor_id: int
    date: date
    start_time: time
    end_time: time
    is_booked: bool

    class Config:
        from_attributes = True


class PublishAvailabilityResponse(BaseModel):
    message: str
    skipped: int
    slots: list[AvailabilitySlotResponse]


class ClearSlotsResponse(BaseModel):
    deleted: int


def to_candidate_response(candidate: CandidateSlot) -> CandidateSlotResponse:
    return CandidateSlotResponse(
        start=time_utils.to_storage(candidate.start),
        end=time_utils.to_storage(candidate.end),
        start_display=candidate.start_display,
        end_display=candidate.end_display,
    )


def to_preview_response(plan: SlotPlan) -> SlotPreviewResponse:
    return SlotPreviewResponse(
        valid=bool(plan.slots),
        message=plan.message,
        slots=[to_candidate_response(candidate) for candidate in plan.slots],
        was_adjusted=plan.was_adjusted,
        adjusted_start=time_utils.to_display(plan.effective_start) if plan.was_adjusted else None,
        skipped=plan.skipped,
    )


@router.get('/time-options', response_model=list[str])
def list_time_options():
    return time_utils.time_options()


@router.post('/preview', response_model=SlotPreviewResponse, dependencies=[Depends(require_counselor)])
def preview_availability(
    data: AvailabilityWindowRequest,
    now: datetime = Depends(get_now),
):
    try:
        plan = generate_slots(data.start_time, data.end_time, now)
    except SchedulingError as exc:
        return SlotPreviewResponse(valid=False, message=exc.detail, slots=[], was_adjusted=False)

    return to_preview_response(plan)


@router.post('/slots', response_model=PublishAvailabilityResponse, status_code=status.HTTP_201_CREATED)
def publish_availability(
    data: AvailabilityWindowRequest,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        result = availability_store.publish_availability(db, current_user.id, data.start_time, data.end_time, now)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    count = len(result.slots)
    message = f'Successfully added {count} availability slot(s)!'
    if result.plan.skipped:
        message = f'{message} ({result.plan.skipped} past slot(s) were skipped)'

    return PublishAvailabilityResponse(
        message=message,
        skipped=result.plan.skipped,
        slots=[AvailabilitySlotResponse.model_validate(slot) for slot in result.slots],
    )


@router.get('/slots', response_model=list[AvailabilitySlotResponse])
def list_bookable_slots(
    counselor_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        return availability_store.list_bookable_slots(db, now, counselor_id=counselor_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/slots/mine', response_model=list[AvailabilitySlotResponse])
def list_my_slots(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        slots = availability_store.list_slots(db, counselor_id=current_user.id, day=now.date())
        return temporal.filter_open_slots(slots, now)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.delete('/slots/{slot_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_slot(
    slot_id: int,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability_store.delete_slot(db, slot_id, current_user.id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/slots', response_model=ClearSlotsResponse)
def clear_unbooked_slots(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        deleted = availability_store.clear_unbooked_slots(db, current_user.id, now.date())
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return ClearSlotsResponse(deleted=deleted)
