from __future__ import annotations

import math
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Protocol, TypeVar

from .clock import Clock, SystemClock

T = TypeVar("T")


class UpdateAction(Enum):
    """Non-write outcomes of an atomic :meth:`EphemeralStore.update`."""

    KEEP = auto()
    DELETE = auto()


KEEP = UpdateAction.KEEP
DELETE = UpdateAction.DELETE

#: ``mutate(current) -> (new_value | KEEP | DELETE, result)``
Mutator = Callable[[str | None], tuple[str | UpdateAction, T]]


class EphemeralStore(Protocol):
    """
    Key-value store whose entries expire on their own.

    Values are opaque strings; callers own the encoding. All operations are
    atomic per key and :meth:`update` is the read-compare-write primitive used
    for every check-then-mutate sequence (never ``get`` followed by ``set``).
    """

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` replacing any previous entry and TTL."""

    def get(self, key: str) -> str | None:
        """Return the live value or ``None`` when absent/expired."""

    def delete(self, key: str) -> None:
        """Remove ``key``; absence is not an error."""

    def exists(self, key: str) -> bool:
        """Existence check only; no side effects."""

    def remaining_ttl(self, key: str) -> int | None:
        """Seconds until ``key`` expires, or ``None`` when absent or persistent."""

    def update(self, key: str, mutate: Mutator[T]) -> T:
        """
        Atomically read ``key``, let ``mutate`` decide, and apply the decision.

        ``mutate`` receives the current value (``None`` when absent) and returns
        ``(action, result)``. A string ``action`` replaces the value while
        **keeping the key's remaining TTL**; :data:`DELETE` removes the key;
        :data:`KEEP` writes nothing. ``result`` is handed back to the caller.

        ``mutate`` must be free of side effects: optimistic implementations may
        call it more than once.
        """


class InMemoryEphemeralStore(EphemeralStore):
    """
    Process-local TTL store.

    .. note::
       Uses a threading lock for atomicity; suitable for unit tests and for
       single-process development servers only.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._data: dict[str, tuple[str, datetime | None]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _live(self, key: str) -> tuple[str, datetime | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock.now():
            del self._data[key]
            return None
        return entry

    # -------------------------- API ----------------------------

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._data[key] = (value, self._clock.now() + timedelta(seconds=ttl_seconds))

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def remaining_ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry[1] is None:
                return None
            return math.ceil((entry[1] - self._clock.now()).total_seconds())

    def update(self, key: str, mutate: Mutator[T]) -> T:
        with self._lock:
            entry = self._live(key)
            action, result = mutate(entry[0] if entry else None)
            if action is DELETE:
                self._data.pop(key, None)
            elif isinstance(action, str):
                # absolute expiry is carried over unchanged
                self._data[key] = (action, entry[1] if entry else None)
            return result
