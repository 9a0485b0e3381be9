from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class PurposeContext:
    """
    What the delivered code is for, so the transport can word its message.

    :ivar purpose: Challenge purpose name (``REGISTRATION``, ``LOGIN``, ...).
    :ivar expires_in_minutes: Validity window shown to the recipient.
    """

    purpose: str
    expires_in_minutes: int


class Notifier(Protocol):
    """
    Port delivering a one-time code to an identity out of band.

    Implementations may block (SMTP, HTTP); callers never invoke them on the
    request path, see :class:`stepup.services.notifications.NotificationDispatcher`.
    """

    def send(self, identity: str, code: str, context: PurposeContext) -> None: ...


@dataclass(frozen=True, slots=True)
class SentMessage:
    identity: str
    code: str
    context: PurposeContext


class OutboxNotifier(Notifier):
    """In-memory notifier capturing deliveries for assertions in tests."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[SentMessage] = []
        self.fail = fail
        self._lock = threading.Lock()
        self._delivered = threading.Condition(self._lock)

    def send(self, identity: str, code: str, context: PurposeContext) -> None:
        if self.fail:
            raise ConnectionError("outbox configured to fail")
        with self._delivered:
            self.sent.append(SentMessage(identity=identity, code=code, context=context))
            self._delivered.notify_all()

    def last_code_for(self, identity: str) -> str | None:
        with self._lock:
            for msg in reversed(self.sent):
                if msg.identity == identity:
                    return msg.code
        return None

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        """Block until ``count`` messages were delivered (or ``timeout``)."""
        with self._delivered:
            return self._delivered.wait_for(lambda: len(self.sent) >= count, timeout=timeout)
