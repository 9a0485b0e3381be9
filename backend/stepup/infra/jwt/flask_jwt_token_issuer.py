# stepup/infra/jwt/flask_jwt_token_issuer.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import cast

from stepup.services._shared.ports import MintedTokens, TokenIssuer


@dataclass(slots=True)
class JWTTokenIssuer(TokenIssuer):
    """
    Adapter for Flask-JWT-Extended.

    The refresh token is a signed JWT, but the session core treats it as an
    opaque string: validity is decided by its stored record, not its claims.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=7)

    def mint(self, subject_id: int | str) -> MintedTokens:
        from flask_jwt_extended import create_access_token, create_refresh_token

        # Flask-JWT-Extended requires a string subject
        identity = str(subject_id)
        access = cast(
            str,
            create_access_token(identity=identity, expires_delta=self.access_expires),
        )
        # each call embeds a fresh random jti, so refresh strings never collide
        refresh = cast(
            str,
            create_refresh_token(identity=identity, expires_delta=self.refresh_expires),
        )
        return MintedTokens(
            access_token=access,
            refresh_token=refresh,
            access_ttl_seconds=int(self.access_expires.total_seconds()),
        )
