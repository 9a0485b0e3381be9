"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask, HTTP, or SQLAlchemy directly. They serve as stable contracts between
stores, the OTP/session core and the calling layer.

None of them is a programming error: every one describes a condition the
caller can recover from (ask for a new code, sign in again, wait out a lock).
The translation to HTTP responses (RFC 7807) is handled by
``stepup/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores or domain logic.
    - The API layer translates them to Problem Details responses.
    """

    default_message = "Service error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


# --------------------------------------------------------------------------- #
# OTP challenge
# --------------------------------------------------------------------------- #


class LockedOut(ServiceError):
    """Raised while an identity is locked after exhausting its attempts."""

    default_message = "Too many failed attempts. Please try again later."


class ChallengeNotFound(ServiceError):
    """Raised when no active challenge exists for the identity."""

    default_message = "No verification code is pending. Please request a new one."


class ChallengeExpired(ServiceError):
    """Raised when the stored challenge is past its expiry."""

    default_message = "Verification code has expired. Please request a new one."


@dataclass(slots=True)
class InvalidCode(ServiceError):
    """
    Raised when the submitted code does not match the active challenge.

    :param remaining_attempts: Submissions left before the identity is locked.
    :type remaining_attempts: int
    """

    remaining_attempts: int

    def __str__(self) -> str:
        return f"Invalid verification code. {self.remaining_attempts} attempts remaining."


# --------------------------------------------------------------------------- #
# Refresh tokens
# --------------------------------------------------------------------------- #


class TokenInvalid(ServiceError):
    """Raised when a presented refresh token is unknown."""

    default_message = "Invalid refresh token."


class TokenExpired(ServiceError):
    """Raised when a presented refresh token is past its expiry."""

    default_message = "Refresh token has expired."


class TokenRevoked(ServiceError):
    """Raised when a presented refresh token was rotated or logged out."""

    default_message = "Refresh token has been revoked."


# --------------------------------------------------------------------------- #
# Storage
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class StorageCorruption(ServiceError):
    """
    Raised when a stored record cannot be decoded under its contract.

    :param key: Store key of the offending record.
    :type key: str
    :param reason: Short explanation of the decode failure.
    :type reason: str
    """

    key: str
    reason: str

    def __str__(self) -> str:
        return f"Corrupted record at {self.key!r}: {self.reason}"


# --------------------------------------------------------------------------- #
# Caller layer (registration / credentials / lookups)
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class IdentityConflict(ServiceError):
    """
    Raised by registration when the identity is already taken.

    :param identity: The conflicting identity (e.g., email).
    :type identity: str
    """

    identity: str

    def __str__(self) -> str:
        return f"Email already exists: {self.identity}"


class InvalidCredentials(ServiceError):
    """Raised when an email/password pair does not authenticate."""

    default_message = "Invalid email or password."


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"
