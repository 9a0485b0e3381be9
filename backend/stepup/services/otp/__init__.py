"""OTP challenge lifecycle (generation, verification, lockout)."""

from .dto import ChallengeReceipt, OtpChallenge, OtpConfig, OtpPurpose
from .lockout import LockoutGuard
from .service import OtpChallengeService

__all__ = [
    "OtpChallengeService",
    "LockoutGuard",
    "OtpChallenge",
    "OtpConfig",
    "OtpPurpose",
    "ChallengeReceipt",
]
