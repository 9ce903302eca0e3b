from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.core.errors import SchedulingError
from backend.database import SessionLocal, ensure_availability_schema, ensure_consultation_schema
from backend.services.notifications import NotificationDispatcher, build_notifier
from backend.services.video_rooms import VideoRoomProvisioner, build_video_provisioner

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_consultation_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_now() -> datetime:
    return datetime.now()


def get_notifier() -> NotificationDispatcher:
    return build_notifier()


def get_video_provisioner() -> VideoRoomProvisioner:
    return build_video_provisioner()
