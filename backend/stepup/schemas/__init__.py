"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    AuthResponseSchema,
    ChallengeReceiptSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    ResendOtpSchema,
    SubjectSchema,
    VerifyOtpSchema,
)

__all__ = [
    "RegisterSchema",
    "LoginSchema",
    "VerifyOtpSchema",
    "ResendOtpSchema",
    "RefreshTokenSchema",
    "ChallengeReceiptSchema",
    "SubjectSchema",
    "AuthResponseSchema",
]
