from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Port supplying the current time (timezone-aware UTC)."""

    def now(self) -> datetime: ...


class SystemClock(Clock):
    """Wall clock used in production."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock(Clock):
    """
    Deterministic clock used in unit tests.

    Time only moves when :meth:`advance` or :meth:`set` is called.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 1, tzinfo=UTC)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, *, seconds: float = 0, minutes: float = 0, days: float = 0) -> datetime:
        with self._lock:
            self._now += timedelta(seconds=seconds, minutes=minutes, days=days)
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value
