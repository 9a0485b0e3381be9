# stepup/services/otp/service.py
from __future__ import annotations

import hmac
import logging
import random
import secrets
from datetime import timedelta
from enum import Enum, auto

from stepup.core.logger import mask_identity
from stepup.services._shared.errors import (
    ChallengeExpired,
    ChallengeNotFound,
    InvalidCode,
    LockedOut,
)
from stepup.services._shared.ports.clock import Clock, SystemClock
from stepup.services._shared.ports.ephemeral_store import DELETE, KEEP, EphemeralStore
from stepup.services._shared.ports.notifier import PurposeContext
from stepup.services.notifications.dispatcher import NotificationDispatcher
from stepup.services.otp import codec
from stepup.services.otp.dto import ChallengeReceipt, OtpChallenge, OtpConfig, OtpPurpose
from stepup.services.otp.lockout import LockoutGuard

log = logging.getLogger(__name__)

OTP_PREFIX = "otp:"


class _Verdict(Enum):
    """What the atomic check inside :meth:`OtpChallengeService.verify` decided."""

    NOT_FOUND = auto()
    EXPIRED = auto()
    EXHAUSTED = auto()
    WRONG_CODE = auto()
    ACCEPTED = auto()


class OtpChallengeService:
    """
    OTP challenge lifecycle: generation, verification, resend and lockout.

    The ephemeral store is the single source of truth; nothing is cached
    between calls. Every read-check-write on a challenge goes through
    :meth:`EphemeralStore.update`, so concurrent submissions for the same
    identity are serialized by the store and no failed attempt is lost.

    State machine per identity::

        ABSENT -> ACTIVE(0) -> ACTIVE(k) -> CONSUMED | EXPIRED | LOCKED

    The three terminal states are equivalent to ``ABSENT`` for the next
    :meth:`generate`.
    """

    def __init__(
        self,
        *,
        store: EphemeralStore,
        dispatcher: NotificationDispatcher,
        lockout: LockoutGuard | None = None,
        config: OtpConfig | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param store: TTL store holding challenges (and lock markers).
        :param dispatcher: Non-blocking code delivery.
        :param lockout: Lock markers; defaults to a guard on ``store``.
        :param config: Expiry/attempt/lock/length settings.
        :param clock: Time source.
        :param rng: Random source for codes; defaults to :class:`secrets.SystemRandom`.
        """
        self.store = store
        self.dispatcher = dispatcher
        self.lockout = lockout or LockoutGuard(store)
        self.cfg = config or OtpConfig()
        self.clock = clock or SystemClock()
        self.rng = rng or secrets.SystemRandom()

    @staticmethod
    def challenge_key(identity: str) -> str:
        return f"{OTP_PREFIX}{identity}"

    # ------------------------------------------------------------------ #
    # Generate
    # ------------------------------------------------------------------ #

    def generate(self, identity: str, purpose: OtpPurpose) -> ChallengeReceipt:
        """
        Issue a fresh challenge for ``identity``, replacing any previous one.

        :param identity: Normalized, non-empty identity (e.g., email).
        :param purpose: What the challenge authorizes.
        :returns: Receipt with masked identity and validity window (never the code).
        :raises LockedOut: If the identity is currently locked.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")
        masked = mask_identity(identity)
        if self.lockout.is_locked(identity):
            log.warning("otp.generate_refused identity=%s reason=locked", masked)
            raise LockedOut()

        code = self._new_code()
        now = self.clock.now()
        challenge = OtpChallenge(
            identity=identity,
            code=code,
            purpose=purpose,
            created_at=now,
            expires_at=now + timedelta(seconds=self.cfg.expiration_seconds),
            attempts=0,
        )
        self.store.set_with_ttl(
            self.challenge_key(identity), codec.encode(challenge), self.cfg.expiration_seconds
        )
        log.info(
            "otp.generated identity=%s purpose=%s",
            masked,
            purpose.value,
            extra={"identity": masked, "purpose": purpose.value},
        )

        # Fire-and-forget: the challenge exists already and can be resent.
        self.dispatcher.submit(
            identity,
            code,
            PurposeContext(purpose=purpose.value, expires_in_minutes=self.cfg.expires_in_minutes),
        )

        return ChallengeReceipt(
            message="Verification code sent.",
            masked_identity=masked,
            expires_in_minutes=self.cfg.expires_in_minutes,
        )

    # ------------------------------------------------------------------ #
    # Verify
    # ------------------------------------------------------------------ #

    def verify(self, identity: str, submitted_code: str) -> OtpChallenge:
        """
        Check ``submitted_code`` against the active challenge and consume it.

        Order: lock check, lookup, expiry, attempt budget, code comparison.

        :returns: The consumed challenge (callers branch on its ``purpose``).
        :raises LockedOut: If locked, or if this submission exhausted the budget.
        :raises ChallengeNotFound: If no challenge is active.
        :raises ChallengeExpired: If the challenge is past ``expires_at``.
        :raises InvalidCode: On a wrong code with attempts left.
        :raises StorageCorruption: If the stored record cannot be decoded.
        """
        masked = mask_identity(identity)
        if self.lockout.is_locked(identity):
            log.warning("otp.verify_refused identity=%s reason=locked", masked)
            raise LockedOut()

        key = self.challenge_key(identity)
        now = self.clock.now()
        max_attempts = self.cfg.max_attempts

        def _check(raw: str | None):
            if raw is None:
                return KEEP, (_Verdict.NOT_FOUND, None)
            challenge = codec.decode(key, raw)
            if challenge.expires_at < now:
                return DELETE, (_Verdict.EXPIRED, challenge)
            if challenge.attempts >= max_attempts:
                # removed only after the lock marker is written, see _discard_exhausted
                return KEEP, (_Verdict.EXHAUSTED, challenge)
            if not hmac.compare_digest(submitted_code.encode(), challenge.code.encode()):
                failed = challenge.with_failed_attempt()
                # written back with the key's remaining TTL: expiry never moves
                return codec.encode(failed), (_Verdict.WRONG_CODE, failed)
            return DELETE, (_Verdict.ACCEPTED, challenge)

        verdict, challenge = self.store.update(key, _check)

        if verdict is _Verdict.NOT_FOUND:
            # a concurrent submission may have just exhausted and discarded it
            if self.lockout.is_locked(identity):
                raise LockedOut()
            log.warning("otp.verify_failed identity=%s reason=not_found", masked)
            raise ChallengeNotFound()

        if verdict is _Verdict.EXPIRED:
            log.warning("otp.verify_failed identity=%s reason=expired", masked)
            raise ChallengeExpired()

        if verdict is _Verdict.EXHAUSTED:
            self.lockout.lock(identity, self.cfg.lock_duration_seconds)
            self._discard_exhausted(key)
            raise LockedOut("Too many failed attempts. Account locked.")

        if verdict is _Verdict.WRONG_CODE:
            remaining = max_attempts - challenge.attempts
            log.warning(
                "otp.verify_failed identity=%s reason=wrong_code attempts=%s",
                masked,
                challenge.attempts,
                extra={"identity": masked, "attempts": challenge.attempts},
            )
            if remaining <= 0:
                self.lockout.lock(identity, self.cfg.lock_duration_seconds)
                raise LockedOut("Too many failed attempts. Account locked.")
            raise InvalidCode(remaining_attempts=remaining)

        log.info("otp.verified identity=%s purpose=%s", masked, challenge.purpose.value)
        return challenge

    # ------------------------------------------------------------------ #
    # Resend
    # ------------------------------------------------------------------ #

    def resend_otp(self, identity: str) -> ChallengeReceipt:
        """
        Issue a brand-new challenge keeping the previous purpose (``LOGIN`` if none).

        Attempts and expiry restart: a resend is a fresh challenge.
        """
        key = self.challenge_key(identity)
        raw = self.store.get(key)
        purpose = codec.decode(key, raw).purpose if raw is not None else OtpPurpose.LOGIN
        log.info("otp.resend identity=%s purpose=%s", mask_identity(identity), purpose.value)
        return self.generate(identity, purpose)

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def _discard_exhausted(self, key: str) -> None:
        """Delete the challenge at ``key`` only if it is still out of attempts."""
        max_attempts = self.cfg.max_attempts

        def _drop(raw: str | None):
            if raw is not None and codec.decode(key, raw).attempts >= max_attempts:
                return DELETE, None
            return KEEP, None

        self.store.update(key, _drop)

    def _new_code(self) -> str:
        length = self.cfg.length
        return f"{self.rng.randrange(10**length):0{length}d}"
