from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol


@dataclass(frozen=True, slots=True)
class MintedTokens:
    """
    Signed token strings for one subject.

    :ivar access_token: Encoded access token.
    :ivar refresh_token: Encoded refresh token (opaque to the session core).
    :ivar access_ttl_seconds: Lifetime of ``access_token``.
    """

    access_token: str
    refresh_token: str
    access_ttl_seconds: int


class TokenIssuer(Protocol):
    """Port minting signed access/refresh token strings for a subject."""

    def mint(self, subject_id: int | str) -> MintedTokens: ...


class StubTokenIssuer(TokenIssuer):
    """Deterministic, unsigned issuer used in unit tests."""

    def __init__(self, *, access_ttl: timedelta = timedelta(minutes=15)) -> None:
        self._seq = itertools.count(1)
        self._access_ttl = access_ttl

    def mint(self, subject_id: int | str) -> MintedTokens:
        seq = next(self._seq)
        return MintedTokens(
            access_token=f"access.{subject_id}.{seq}",
            refresh_token=f"refresh.{subject_id}.{seq}",
            access_ttl_seconds=int(self._access_ttl.total_seconds()),
        )
