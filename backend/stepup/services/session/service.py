# stepup/services/session/service.py
from __future__ import annotations

import logging

from stepup.services._shared.errors import TokenExpired, TokenInvalid, TokenRevoked
from stepup.services._shared.ports.clock import Clock, SystemClock
from stepup.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenStore,
)
from stepup.services._shared.ports.token_issuer import TokenIssuer
from stepup.services.session.dto import SessionConfig, TokenPair

log = logging.getLogger(__name__)


class SessionService:
    """
    Refresh-token lifecycle: issuance, rotation and revocation.

    Security
    --------
    - Every refresh token has a server-side record; the record is persisted
      *before* the token is handed out.
    - Rotation revokes the presented token through the store's
      compare-and-set, so of two concurrent rotations exactly one wins.
    - Expiry is evaluated lazily when a token is presented.

    State machine per token::

        ACTIVE -> REVOKED   (rotation or logout)
        ACTIVE -> EXPIRED   (time)
    """

    def __init__(
        self,
        *,
        token_issuer: TokenIssuer,
        refresh_store: RefreshTokenStore,
        config: SessionConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param token_issuer: Mints signed token strings.
        :param refresh_store: Durable refresh token records.
        :param config: Refresh lifetime configuration.
        :param clock: Time source.
        """
        self.tokens = token_issuer
        self.refresh_store = refresh_store
        self.cfg = config or SessionConfig()
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(self, subject_id: int) -> TokenPair:
        """
        Mint a token pair for ``subject_id`` and persist its refresh record.

        :returns: Fresh access/refresh pair.
        """
        minted = self.tokens.mint(subject_id)
        now = self.clock.now()
        self.refresh_store.save(
            RefreshTokenRecord(
                token=minted.refresh_token,
                subject_id=subject_id,
                issued_at=now,
                expires_at=now + self.cfg.refresh_lifetime,
                revoked=False,
            )
        )
        log.info("session.issued subject_id=%s", subject_id, extra={"subject_id": subject_id})
        return TokenPair(
            access_token=minted.access_token,
            refresh_token=minted.refresh_token,
            expires_in_seconds=minted.access_ttl_seconds,
            subject_id=subject_id,
        )

    # ------------------------------------------------------------------ #
    # Rotate
    # ------------------------------------------------------------------ #

    def rotate(self, presented: str) -> TokenPair:
        """
        Exchange a live refresh token for a new pair, revoking the old one.

        The old record is revoked first; if issuing the new pair then fails,
        the caller is left with a revoked token and must sign in again, but
        an old token is never still live after a successful rotation.

        :raises TokenInvalid: If the token is unknown.
        :raises TokenRevoked: If already revoked, or another rotation won the race.
        :raises TokenExpired: If past its expiry.
        """
        record = self.refresh_store.find_by_token(presented)
        if record is None:
            log.warning("session.rotate_failed reason=not_found")
            raise TokenInvalid()
        if record.revoked:
            log.warning(
                "session.rotate_failed reason=revoked subject_id=%s",
                record.subject_id,
                extra={"subject_id": record.subject_id},
            )
            raise TokenRevoked()
        if record.expires_at < self.clock.now():
            log.warning(
                "session.rotate_failed reason=expired subject_id=%s",
                record.subject_id,
                extra={"subject_id": record.subject_id},
            )
            raise TokenExpired()

        if not self.refresh_store.revoke_if_active(presented):
            # lost the compare-and-set against a concurrent rotation/logout
            log.warning(
                "session.rotate_failed reason=race_lost subject_id=%s",
                record.subject_id,
                extra={"subject_id": record.subject_id},
            )
            raise TokenRevoked()

        pair = self.issue(record.subject_id)
        log.info(
            "session.rotated subject_id=%s",
            record.subject_id,
            extra={"subject_id": record.subject_id},
        )
        return pair

    # ------------------------------------------------------------------ #
    # Revoke
    # ------------------------------------------------------------------ #

    def revoke(self, presented: str) -> None:
        """Revoke ``presented`` if it exists. Unknown or already revoked tokens are ignored."""
        if self.refresh_store.revoke_if_active(presented):
            log.info("session.revoked")
        else:
            log.debug("session.revoke_noop")
