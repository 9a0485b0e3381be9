from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Server-side state of one refresh token.

    :ivar token: Opaque token string handed to the client (unique).
    :ivar subject_id: Owner subject id.
    :ivar issued_at: Issuance time (UTC).
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked: Whether the token was rotated away or logged out.
    """

    token: str
    subject_id: int
    issued_at: datetime
    expires_at: datetime
    revoked: bool = False


class RefreshTokenStore(Protocol):
    """
    Durable store for refresh tokens.

    Records are never un-revoked and never physically deleted by the session
    core; :meth:`delete_by_user` exists for housekeeping jobs.
    """

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        """Fetch a single record snapshot (if present)."""

    def save(self, record: RefreshTokenRecord) -> None:
        """Persist a brand-new record. MUST be durable before the token is returned."""

    def revoke_if_active(self, token: str) -> bool:
        """
        Atomically flip ``revoked`` from false to true.

        :returns: ``True`` only for the single caller that performed the flip.
        """

    def delete_by_user(self, subject_id: int) -> int:
        """
        Physically remove every record of a subject.

        :returns: Number of records removed.
        """


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic compare-and-set revocation.

    .. note::
       Uses a threading lock to simulate atomicity in unit tests.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self._by_token.get(token)

    def save(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            if record.token in self._by_token:
                raise ValueError("Refresh token already stored.")
            self._by_token[record.token] = record

    def revoke_if_active(self, token: str) -> bool:
        with self._lock:
            record = self._by_token.get(token)
            if record is None or record.revoked:
                return False
            self._by_token[token] = replace(record, revoked=True)
            return True

    def delete_by_user(self, subject_id: int) -> int:
        with self._lock:
            doomed = [t for t, r in self._by_token.items() if r.subject_id == subject_id]
            for token in doomed:
                del self._by_token[token]
            return len(doomed)
