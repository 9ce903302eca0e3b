"""Scheduling error taxonomy.

Every error carries the HTTP status and the user-facing detail the routes
surface, so the service layer stays free of FastAPI imports.
"""


class SchedulingError(Exception):
    status_code = 400
    default_detail = 'Scheduling request could not be completed.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidTimeWindow(SchedulingError):
    status_code = 400
    default_detail = 'Invalid time window.'


class SlotAlreadyExists(SchedulingError):
    status_code = 409
    default_detail = 'One or more time slots already exist.'


class SlotNotFound(SchedulingError):
    status_code = 404
    default_detail = 'Availability slot not found. Please refresh the slot list.'


class SlotExpired(SchedulingError):
    status_code = 410
    default_detail = 'This time slot has already passed. Please select another time.'


class SlotAlreadyBooked(SchedulingError):
    status_code = 409
    default_detail = 'This slot was just booked by someone else. Please select another time.'


class SlotNotDeletable(SchedulingError):
    status_code = 409
    default_detail = 'Booked time slots cannot be removed.'


class ConsultationNotFound(SchedulingError):
    status_code = 404
    default_detail = 'Consultation not found.'


class InvalidStatusTransition(SchedulingError):
    status_code = 409
    default_detail = 'This consultation can no longer be changed.'


class NotConsultationOwner(SchedulingError):
    status_code = 403
    default_detail = 'Not authorized to modify this consultation.'


class VideoProvisioningError(SchedulingError):
    status_code = 502
    default_detail = 'Failed to create the video room for this consultation.'


class BookingFailed(SchedulingError):
    status_code = 503
    default_detail = 'Failed to create consultation. The time slot has been released.'
