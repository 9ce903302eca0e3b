"""Closed enumerations for consultation status and user role."""

import enum

from backend.core.errors import InvalidStatusTransition


class UserRole(str, enum.Enum):
    STUDENT = 'student'
    COUNSELOR = 'counselor'
    ADMIN = 'admin'


class ConsultationStatus(str, enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    COMPLETED = 'completed'


ALLOWED_TRANSITIONS: dict[ConsultationStatus, frozenset[ConsultationStatus]] = {
    ConsultationStatus.PENDING: frozenset({ConsultationStatus.ACCEPTED, ConsultationStatus.REJECTED}),
    ConsultationStatus.ACCEPTED: frozenset({ConsultationStatus.COMPLETED}),
    ConsultationStatus.REJECTED: frozenset(),
    ConsultationStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current: ConsultationStatus, target: ConsultationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[ConsultationStatus(current)]


def ensure_transition(current: ConsultationStatus, target: ConsultationStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransition(
            f'Cannot change a {ConsultationStatus(current).value} consultation to {ConsultationStatus(target).value}.'
        )
