"""Best-effort booking notifications.

Delivery (email) lives outside this service. A dispatcher is told which
consultation changed and why, after the change has been committed. A failed
dispatch is logged and never undoes the transition.
"""

import enum
import logging
from typing import Protocol

import httpx

from backend.core import config

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    BOOKED = 'booked'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'


class NotificationDispatcher(Protocol):
    def dispatch(self, consultation_id: int, event: NotificationEvent) -> None:
        ...


class LoggingNotificationDispatcher:
    def dispatch(self, consultation_id: int, event: NotificationEvent) -> None:
        logger.info('Notification queued: consultation %s %s', consultation_id, event.value)


class WebhookNotificationDispatcher:
    """Posts ``{"consultationId": ..., "event": ...}`` to the mailer backend."""

    def __init__(self, url: str, client: httpx.Client | None = None, timeout: float = 5.0):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def dispatch(self, consultation_id: int, event: NotificationEvent) -> None:
        response = self.client.post(self.url, json={'consultationId': consultation_id, 'event': event.value})
        response.raise_for_status()


def notify(dispatcher: NotificationDispatcher | None, consultation_id: int, event: NotificationEvent) -> bool:
    if dispatcher is None:
        return False
    try:
        dispatcher.dispatch(consultation_id, event)
    except Exception:
        logger.exception('Failed to send %s notification for consultation %s', event.value, consultation_id)
        return False
    return True


def build_notifier() -> NotificationDispatcher:
    if config.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationDispatcher(config.NOTIFICATION_WEBHOOK_URL)
    return LoggingNotificationDispatcher()
