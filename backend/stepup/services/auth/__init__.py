"""Caller-facing authentication flow built on the OTP and session services."""

from .dto import AuthResponse, LoginIn, RegisterIn
from .service import AuthService

__all__ = ["AuthService", "AuthResponse", "LoginIn", "RegisterIn"]
