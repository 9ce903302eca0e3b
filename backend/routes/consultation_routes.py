from datetime import date, datetime, time

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_counselor, require_student
from backend.core import temporal
from backend.core.errors import NotConsultationOwner, SchedulingError
from backend.core.statuses import ConsultationStatus
from backend.models.consultation import Consultation
from backend.models.user import User
from backend.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    get_notifier,
    get_now,
    get_video_provisioner,
    scheduling_http_error,
)
from backend.services import booking, consultations, expiration
from backend.services.conflicts import reject_all_pending
from backend.services.notifications import NotificationDispatcher
from backend.services.video_rooms import VideoRoomProvisioner

router = APIRouter(tags=['consultations'])

MAX_REASON_LENGTH = 200
MAX_REJECTION_REASON_LENGTH = 600
MAX_COUNSELOR_NOTES_LENGTH = 2000


def _normalize_optional_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


class BookConsultationRequest(BaseModel):
    slot_id: int
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_REASON_LENGTH, 'Reason')


class RejectConsultationRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_REJECTION_REASON_LENGTH, 'Rejection reason')


class CounselorNotesRequest(BaseModel):
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_optional_text(value, MAX_COUNSELOR_NOTES_LENGTH, 'Notes')


class ConsultationResponse(BaseModel):
    id: int
    student_id: int
    counselor_id: int
    date: date
    time: time
    status: ConsultationStatus
    display_status: str
    effective_status: ConsultationStatus
    availability_id: int | None = None
    reason: str | None = None
    rejection_reason: str | None = None
    counselor_notes: str | None = None
    video_link: str | None = None
    meeting_ended: bool


class AcceptConsultationResponse(BaseModel):
    consultation: ConsultationResponse
    room_url: str
    rejected_competitors: int
    failed_competitors: int


class BulkOperationResponse(BaseModel):
    succeeded: int
    failed: int
    consultation_ids: list[int]


class SessionAccessResponse(BaseModel):
    consultation_id: int
    phase: temporal.SessionPhase | None = None
    can_access: bool
    message: str
    video_link: str | None = None
    minutes_until_start: int | None = None
    minutes_until_expiry: int | None = None


def to_consultation_response(consultation: Consultation, now: datetime) -> ConsultationResponse:
    return ConsultationResponse(
        id=consultation.id,
        student_id=consultation.student_id,
        counselor_id=consultation.counselor_id,
        date=consultation.date,
        time=consultation.time,
        status=consultation.status,
        display_status=temporal.status_label(consultation.status, consultation.date, consultation.time, now),
        effective_status=temporal.effective_status(
            consultation.status,
            consultation.meeting_ended,
            consultation.date,
            consultation.time,
            now,
        ),
        availability_id=consultation.availability_id,
        reason=consultation.reason,
        rejection_reason=consultation.rejection_reason,
        counselor_notes=consultation.counselor_notes,
        video_link=consultation.video_link,
        meeting_ended=bool(consultation.meeting_ended),
    )


def to_bulk_response(result) -> BulkOperationResponse:
    return BulkOperationResponse(
        succeeded=result.success_count,
        failed=result.failure_count,
        consultation_ids=result.succeeded,
    )


@router.post('', response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
def book_consultation(
    data: BookConsultationRequest,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    ensure_database_ready()

    try:
        consultation = booking.book_slot(db, data.slot_id, current_user.id, now, data.reason, notifier)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_consultation_response(consultation, now)


@router.get('/mine', response_model=list[ConsultationResponse])
def list_my_consultations(
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        rows = consultations.list_consultations(db, student_id=current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [to_consultation_response(row, now) for row in rows]


@router.get('/pending', response_model=list[ConsultationResponse])
def list_pending_requests(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        rows = consultations.list_consultations(
            db,
            counselor_id=current_user.id,
            statuses=[ConsultationStatus.PENDING],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [to_consultation_response(row, now) for row in rows]


@router.get('/history', response_model=list[ConsultationResponse])
def list_counselor_history(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        rows = consultations.list_consultations(
            db,
            counselor_id=current_user.id,
            statuses=[ConsultationStatus.ACCEPTED, ConsultationStatus.REJECTED, ConsultationStatus.COMPLETED],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return [to_consultation_response(row, now) for row in rows]


@router.get('/{consultation_id}/session', response_model=SessionAccessResponse)
def get_session_access(
    consultation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        consultation = consultations.get_consultation(db, consultation_id)
        if current_user.id not in (consultation.student_id, consultation.counselor_id):
            raise NotConsultationOwner('Not authorized to view this consultation.')
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    access = consultations.session_access(consultation, now)
    if access is None:
        return SessionAccessResponse(
            consultation_id=consultation.id,
            can_access=False,
            message='No active video session for this consultation.',
        )

    return SessionAccessResponse(
        consultation_id=consultation.id,
        phase=access.phase,
        can_access=access.can_access,
        message=access.message,
        video_link=consultation.video_link if access.can_access else None,
        minutes_until_start=access.minutes_until_start,
        minutes_until_expiry=access.minutes_until_expiry,
    )


@router.post('/reject-all', response_model=BulkOperationResponse)
def reject_all_requests(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    ensure_database_ready()

    try:
        result = reject_all_pending(db, current_user.id, notifier)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_bulk_response(result)


@router.post('/sweep', response_model=BulkOperationResponse)
def sweep_expired_requests(
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    ensure_database_ready()

    try:
        result = expiration.sweep_expired_requests(db, now, counselor_id=current_user.id, notifier=notifier)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_bulk_response(result)


@router.post('/{consultation_id}/accept', response_model=AcceptConsultationResponse)
def accept_consultation(
    consultation_id: int,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    provisioner: VideoRoomProvisioner = Depends(get_video_provisioner),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    ensure_database_ready()

    try:
        result = consultations.accept_consultation(
            db,
            consultation_id,
            current_user.id,
            provisioner,
            now,
            notifier,
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return AcceptConsultationResponse(
        consultation=to_consultation_response(result.consultation, now),
        room_url=result.room_url,
        rejected_competitors=result.cascade.success_count,
        failed_competitors=result.cascade.failure_count,
    )


@router.post('/{consultation_id}/reject', response_model=ConsultationResponse)
def reject_consultation(
    consultation_id: int,
    data: RejectConsultationRequest,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    ensure_database_ready()

    try:
        consultation = consultations.reject_consultation(
            db,
            consultation_id,
            current_user.id,
            data.reason,
            notifier,
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_consultation_response(consultation, now)


@router.post('/{consultation_id}/end', response_model=ConsultationResponse)
def end_meeting(
    consultation_id: int,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        consultation = consultations.end_meeting(db, consultation_id, current_user.id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_consultation_response(consultation, now)


@router.put('/{consultation_id}/notes', response_model=ConsultationResponse)
def save_counselor_notes(
    consultation_id: int,
    data: CounselorNotesRequest,
    current_user: User = Depends(require_counselor),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    ensure_database_ready()

    try:
        consultation = consultations.save_notes(db, consultation_id, current_user.id, data.notes)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_consultation_response(consultation, now)
