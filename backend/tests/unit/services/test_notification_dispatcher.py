# tests/unit/services/test_notification_dispatcher.py
from __future__ import annotations

import logging
import threading

from stepup.services._shared.ports import OutboxNotifier, PurposeContext
from stepup.services.notifications import NotificationDispatcher

CTX = PurposeContext(purpose="LOGIN", expires_in_minutes=5)


class _BlockingNotifier:
    """Notifier that parks every delivery until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.started = threading.Event()

    def send(self, identity, code, context):
        self.started.set()
        self.release.wait(timeout=5)


def test_submit_delivers_in_background():
    outbox = OutboxNotifier()
    dispatcher = NotificationDispatcher(outbox, max_workers=1, queue_capacity=5)
    try:
        assert dispatcher.submit("a@b.com", "123456", CTX) is True
        assert outbox.wait_for(1)
    finally:
        dispatcher.shutdown(wait=True)
    assert outbox.sent[0].code == "123456"
    assert outbox.sent[0].context == CTX


def test_failed_delivery_is_logged_not_raised(caplog):
    dispatcher = NotificationDispatcher(OutboxNotifier(fail=True), max_workers=1)
    with caplog.at_level(logging.ERROR, logger="stepup.services.notifications.dispatcher"):
        assert dispatcher.submit("alice@example.com", "123456", CTX) is True
        dispatcher.shutdown(wait=True)

    failures = [r for r in caplog.records if "otp.delivery_failed" in r.getMessage()]
    assert len(failures) == 1
    assert failures[0].exc_info is not None
    # codes and full identities stay out of the log
    assert "123456" not in failures[0].getMessage()
    assert "alice@example.com" not in failures[0].getMessage()


def test_full_queue_drops_new_deliveries():
    notifier = _BlockingNotifier()
    dispatcher = NotificationDispatcher(notifier, max_workers=1, queue_capacity=1)
    try:
        assert dispatcher.submit("a@b.com", "1", CTX) is True
        assert notifier.started.wait(timeout=2)
        assert dispatcher.submit("a@b.com", "2", CTX) is True  # waits in the queue
        assert dispatcher.submit("a@b.com", "3", CTX) is False  # dropped
    finally:
        notifier.release.set()
        dispatcher.shutdown(wait=True)


def test_submit_after_shutdown_is_dropped():
    dispatcher = NotificationDispatcher(OutboxNotifier())
    dispatcher.shutdown(wait=True)
    assert dispatcher.submit("a@b.com", "123456", CTX) is False
