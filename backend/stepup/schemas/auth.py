"""Authentication-related Marshmallow schemas.

Wire names are camelCase; Python attribute names stay snake_case through
``data_key``.
"""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, fields, post_load, pre_load, validate

from stepup.services.auth.dto import LoginIn, RegisterIn

# ------------------------------ Inputs ------------------------------------ #


class _StripEmailMixin:
    @pre_load
    def _strip_email(self, data: Any, **kwargs: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = {**data, "email": data["email"].strip()}
        return data


class RegisterSchema(_StripEmailMixin, Schema):
    """Input payload for account registration."""

    first_name = fields.String(
        data_key="firstName", required=True, validate=validate.Length(min=1, max=100)
    )
    last_name = fields.String(
        data_key="lastName", required=True, validate=validate.Length(min=1, max=100)
    )
    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    phone_number = fields.String(
        data_key="phoneNumber", load_default=None, validate=validate.Length(max=32)
    )

    @post_load
    def _make(self, data: dict[str, Any], **kwargs: Any) -> RegisterIn:
        return RegisterIn(**data)


class LoginSchema(_StripEmailMixin, Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))

    @post_load
    def _make(self, data: dict[str, Any], **kwargs: Any) -> LoginIn:
        return LoginIn(**data)


class VerifyOtpSchema(_StripEmailMixin, Schema):
    """Input payload for submitting a one-time code."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    code = fields.String(required=True, validate=validate.Regexp(r"^\d{4,10}$"))


class ResendOtpSchema(_StripEmailMixin, Schema):
    email = fields.Email(required=True, validate=validate.Length(max=254))


class RefreshTokenSchema(Schema):
    """Input payload carrying a refresh token (refresh and logout)."""

    refresh_token = fields.String(
        data_key="refreshToken", required=True, validate=validate.Length(min=1)
    )


# ------------------------------ Outputs ----------------------------------- #


class ChallengeReceiptSchema(Schema):
    """Response payload confirming a code was sent."""

    message = fields.String()
    masked_identity = fields.String(data_key="maskedIdentity")
    expires_in_minutes = fields.Integer(data_key="expiresInMinutes")


class SubjectSchema(Schema):
    id = fields.Integer()
    first_name = fields.String(data_key="firstName")
    last_name = fields.String(data_key="lastName")
    identity = fields.String()


class AuthResponseSchema(Schema):
    """Response payload with a token pair and the subject it belongs to."""

    access_token = fields.String(attribute="tokens.access_token", data_key="accessToken")
    refresh_token = fields.String(attribute="tokens.refresh_token", data_key="refreshToken")
    token_type = fields.String(attribute="tokens.token_type", data_key="tokenType")
    expires_in_seconds = fields.Integer(
        attribute="tokens.expires_in_seconds", data_key="expiresInSeconds"
    )
    subject = fields.Nested(SubjectSchema)
