"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, request

from stepup.api.deps import json_body, json_response, timing
from stepup.core.services import get_auth_service
from stepup.schemas import (
    AuthResponseSchema,
    ChallengeReceiptSchema,
    LoginSchema,
    RefreshTokenSchema,
    RegisterSchema,
    ResendOtpSchema,
    VerifyOtpSchema,
)

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
verify_schema = VerifyOtpSchema()
resend_schema = ResendOtpSchema()
refresh_schema = RefreshTokenSchema()
receipt_schema = ChallengeReceiptSchema()
auth_schema = AuthResponseSchema()


@bp.post("/register")
@timing
def register():
    """Create an account and send a registration code."""

    dto = register_schema.load(json_body())
    receipt = get_auth_service().register(dto)
    return json_response(receipt_schema.dump(receipt), status=201)


@bp.post("/login")
@timing
def login():
    """Check credentials and send a login code."""

    dto = login_schema.load(json_body())
    receipt = get_auth_service().login(dto)
    return json_response(receipt_schema.dump(receipt), status=201)


@bp.post("/verify-otp")
@timing
def verify_otp():
    """Exchange a valid code for a token pair."""

    data = verify_schema.load(json_body())
    result = get_auth_service().verify_otp_and_login(data["email"], data["code"])
    return json_response(auth_schema.dump(result))


@bp.post("/resend-otp")
@timing
def resend_otp():
    """Send a fresh code. ``email`` may come in the JSON body or the query string."""

    data = resend_schema.load(json_body() or request.args.to_dict())
    receipt = get_auth_service().resend_otp(data["email"])
    return json_response(receipt_schema.dump(receipt))


@bp.post("/refresh-token")
@timing
def refresh_token():
    data = refresh_schema.load(json_body())
    result = get_auth_service().refresh(data["refresh_token"])
    return json_response(auth_schema.dump(result))


@bp.post("/logout")
@timing
def logout():
    """Revoke a refresh token. Unknown tokens are accepted silently."""

    data = refresh_schema.load(json_body())
    get_auth_service().logout(data["refresh_token"])
    return json_response({"message": "Logged out successfully"})
