"""Out-of-band delivery of one-time codes."""

from .dispatcher import NotificationDispatcher

__all__ = ["NotificationDispatcher"]
