import json

import httpx

from backend.services.notifications import (
    LoggingNotificationDispatcher,
    NotificationEvent,
    WebhookNotificationDispatcher,
    notify,
)


def test_webhook_dispatcher_posts_consultation_event() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    dispatcher = WebhookNotificationDispatcher('https://mailer.hinahon.edu/notify', client=client)

    assert notify(dispatcher, 12, NotificationEvent.ACCEPTED) is True
    assert json.loads(seen[0].content) == {'consultationId': 12, 'event': 'accepted'}


def test_failed_webhook_is_logged_not_raised(caplog) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    dispatcher = WebhookNotificationDispatcher('https://mailer.hinahon.edu/notify', client=client)

    assert notify(dispatcher, 12, NotificationEvent.REJECTED) is False
    assert 'Failed to send rejected notification for consultation 12' in caplog.text


def test_notify_without_dispatcher_is_a_no_op() -> None:
    assert notify(None, 12, NotificationEvent.BOOKED) is False


def test_logging_dispatcher_records_event(caplog) -> None:
    caplog.set_level('INFO', logger='backend.services.notifications')

    assert notify(LoggingNotificationDispatcher(), 3, NotificationEvent.BOOKED) is True
    assert 'consultation 3 booked' in caplog.text
