from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class SubjectView:
    """
    Read-model of an authenticated subject, as exposed in token payloads.

    :ivar id: Subject identifier.
    :ivar first_name: Given name.
    :ivar last_name: Family name.
    :ivar identity: Normalized login identity (email).
    """

    id: int
    first_name: str
    last_name: str
    identity: str


class UserDirectory(Protocol):
    """Lookup port used by the callers of the OTP/session core."""

    def find_by_identity(self, identity: str) -> SubjectView | None: ...

    def find_by_id(self, subject_id: int) -> SubjectView | None: ...
