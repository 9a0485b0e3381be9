# stepup/services/otp/dto.py
from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any


class OtpPurpose(str, Enum):
    """What a challenge authorizes once verified."""

    REGISTRATION = "REGISTRATION"
    LOGIN = "LOGIN"
    PASSWORD_RESET = "PASSWORD_RESET"


# --------------------------- Domain record -------------------------------- #


@dataclass(frozen=True, slots=True)
class OtpChallenge:
    """
    One active challenge for an identity.

    :param identity: Normalized identity the code was sent to.
    :type identity: str
    :param code: Fixed-length numeric code.
    :type code: str
    :param purpose: What the challenge is for.
    :type purpose: OtpPurpose
    :param created_at: Creation time (UTC).
    :type created_at: datetime
    :param expires_at: Absolute expiry (UTC); the store TTL mirrors it.
    :type expires_at: datetime
    :param attempts: Wrong submissions so far (never decreases).
    :type attempts: int
    """

    identity: str
    code: str
    purpose: OtpPurpose
    created_at: datetime
    expires_at: datetime
    attempts: int = 0

    def with_failed_attempt(self) -> OtpChallenge:
        """Return a copy with one more recorded wrong attempt."""
        return replace(self, attempts=self.attempts + 1)


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class ChallengeReceipt:
    """
    Output DTO confirming a challenge was issued. Never carries the code.

    :param message: Human-readable confirmation.
    :type message: str
    :param masked_identity: Identity with most of the local part hidden.
    :type masked_identity: str
    :param expires_in_minutes: Validity window of the code.
    :type expires_in_minutes: int
    """

    message: str
    masked_identity: str
    expires_in_minutes: int

    def with_message(self, message: str) -> ChallengeReceipt:
        return replace(self, message=message)


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class OtpConfig:
    """
    OTP challenge configuration.

    :param expiration_seconds: Challenge lifetime.
    :type expiration_seconds: int
    :param max_attempts: Wrong submissions tolerated before locking.
    :type max_attempts: int
    :param lock_duration_seconds: Lock marker lifetime.
    :type lock_duration_seconds: int
    :param length: Digits per code.
    :type length: int
    """

    expiration_seconds: int = 300
    max_attempts: int = 3
    lock_duration_seconds: int = 900
    length: int = 6

    def __post_init__(self) -> None:
        for name in ("expiration_seconds", "max_attempts", "lock_duration_seconds", "length"):
            if int(getattr(self, name)) <= 0:
                raise ValueError(f"OtpConfig.{name} must be positive")

    @property
    def expires_in_minutes(self) -> int:
        # a partial minute still counts: 90 s reads as 2 minutes, never 0
        return math.ceil(self.expiration_seconds / 60)

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> OtpConfig:
        """Build from a Flask-style config mapping (``OTP_*`` keys)."""
        return cls(
            expiration_seconds=int(cfg.get("OTP_EXPIRATION_SECONDS", 300)),
            max_attempts=int(cfg.get("OTP_MAX_ATTEMPTS", 3)),
            lock_duration_seconds=int(cfg.get("OTP_LOCK_DURATION_SECONDS", 900)),
            length=int(cfg.get("OTP_LENGTH", 6)),
        )
