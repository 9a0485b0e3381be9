# stepup/services/session/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access token.
    :type access_token: str
    :param refresh_token: Opaque refresh token backed by a stored record.
    :type refresh_token: str
    :param expires_in_seconds: Access token lifetime.
    :type expires_in_seconds: int
    :param subject_id: Subject the pair was issued to.
    :type subject_id: int
    :param token_type: Always ``"Bearer"``.
    :type token_type: str
    """

    access_token: str
    refresh_token: str
    expires_in_seconds: int
    subject_id: int
    token_type: str = "Bearer"


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """
    Refresh token configuration.

    :param refresh_lifetime: Lifetime of each refresh token record.
    :type refresh_lifetime: timedelta
    """

    refresh_lifetime: timedelta = timedelta(days=7)

    def __post_init__(self) -> None:
        if self.refresh_lifetime <= timedelta(0):
            raise ValueError("SessionConfig.refresh_lifetime must be positive")

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> SessionConfig:
        """Build from a Flask-style config mapping."""
        return cls(refresh_lifetime=timedelta(days=int(cfg.get("REFRESH_TOKEN_LIFETIME_DAYS", 7))))
