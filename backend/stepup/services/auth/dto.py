# stepup/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass

from stepup.services._shared.ports.user_directory import SubjectView
from stepup.services.session.dto import TokenPair

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param first_name: Given name.
    :type first_name: str
    :param last_name: Family name.
    :type last_name: str
    :param email: Login identity (normalized by the model).
    :type email: str
    :param password: Raw password (hashed by the model).
    :type password: str
    :param phone_number: Optional contact number.
    :type phone_number: str | None
    """

    first_name: str
    last_name: str
    email: str
    password: str
    phone_number: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email.
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    email: str
    password: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthResponse:
    """
    Token pair plus the subject it was issued to.

    :param tokens: Access/refresh pair.
    :type tokens: TokenPair
    :param subject: Read-model of the authenticated user.
    :type subject: SubjectView
    """

    tokens: TokenPair
    subject: SubjectView
