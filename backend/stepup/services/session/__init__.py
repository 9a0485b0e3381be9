"""Refresh-token sessions (issue / rotate / revoke)."""

from .dto import SessionConfig, TokenPair
from .service import SessionService

__all__ = ["SessionService", "SessionConfig", "TokenPair"]
