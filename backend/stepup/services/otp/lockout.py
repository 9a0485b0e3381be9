# stepup/services/otp/lockout.py
from __future__ import annotations

import logging

from stepup.core.logger import mask_identity
from stepup.services._shared.ports.ephemeral_store import EphemeralStore

log = logging.getLogger(__name__)

LOCK_PREFIX = "otp-lock:"


class LockoutGuard:
    """
    Presence-only lock markers per identity.

    A marker exists only while the identity is locked; the store TTL removes
    it, so there is no unlock operation.
    """

    def __init__(self, store: EphemeralStore) -> None:
        self.store = store

    @staticmethod
    def _k(identity: str) -> str:
        return f"{LOCK_PREFIX}{identity}"

    def lock(self, identity: str, duration_seconds: int) -> None:
        """Lock ``identity``; re-locking refreshes the TTL."""
        self.store.set_with_ttl(self._k(identity), "1", duration_seconds)
        log.warning(
            "otp.locked identity=%s seconds=%s",
            mask_identity(identity),
            duration_seconds,
            extra={"identity": mask_identity(identity)},
        )

    def is_locked(self, identity: str) -> bool:
        return self.store.exists(self._k(identity))

    def remaining_seconds(self, identity: str) -> int | None:
        """Seconds left on the lock, or ``None`` when unlocked."""
        return self.store.remaining_ttl(self._k(identity))
