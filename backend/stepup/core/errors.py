"""Centralized JSON (RFC 7807) error handling for the API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from stepup.core.logger import ensure_request_id
from stepup.services._shared.errors import (
    ChallengeExpired,
    ChallengeNotFound,
    IdentityConflict,
    InvalidCode,
    InvalidCredentials,
    LockedOut,
    NotFoundError,
    ServiceError,
    StorageCorruption,
    TokenExpired,
    TokenInvalid,
    TokenRevoked,
)

log = logging.getLogger(__name__)

# ServiceError subclass -> (HTTP status, stable error code)
SERVICE_ERROR_MAP: dict[type[ServiceError], tuple[int, str]] = {
    LockedOut: (HTTPStatus.TOO_MANY_REQUESTS, "otp_locked"),
    ChallengeNotFound: (HTTPStatus.BAD_REQUEST, "otp_not_found"),
    ChallengeExpired: (HTTPStatus.BAD_REQUEST, "otp_expired"),
    InvalidCode: (HTTPStatus.BAD_REQUEST, "otp_invalid"),
    TokenInvalid: (HTTPStatus.UNAUTHORIZED, "token_invalid"),
    TokenExpired: (HTTPStatus.UNAUTHORIZED, "token_expired"),
    TokenRevoked: (HTTPStatus.UNAUTHORIZED, "token_revoked"),
    InvalidCredentials: (HTTPStatus.UNAUTHORIZED, "invalid_credentials"),
    IdentityConflict: (HTTPStatus.CONFLICT, "identity_conflict"),
    NotFoundError: (HTTPStatus.NOT_FOUND, "not_found"),
    StorageCorruption: (HTTPStatus.INTERNAL_SERVER_ERROR, "storage_corruption"),
}


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "payload_too_large",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    """
    problem = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": int(status),
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    # Always attach correlation id
    problem["request_id"] = ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any]) -> Response:
    """Return a Flask response with ``application/problem+json`` media type."""
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp


def service_error_status(err: ServiceError) -> tuple[int, str]:
    """Resolve ``(status, code)`` for a service error, walking its MRO."""
    for klass in type(err).__mro__:
        if klass in SERVICE_ERROR_MAP:
            return SERVICE_ERROR_MAP[klass]
    return HTTPStatus.BAD_REQUEST, "bad_request"


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Ensures a correlation ``request_id`` is present on every error.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        status, code = service_error_status(err)
        details: dict[str, Any] | None = None
        if isinstance(err, InvalidCode):
            details = {"remainingAttempts": err.remaining_attempts}
        if status >= 500:
            # internal detail (store key, decode reason) stays in the logs
            problem = _as_problem(status=status, code=code, message="Unexpected error")
            log.error(
                "ServiceError: code=%s request_id=%s", code, problem["request_id"], exc_info=err
            )
        else:
            problem = _as_problem(status=status, code=code, message=str(err), details=details)
            log.warning(
                "ServiceError: code=%s status=%s request_id=%s",
                code,
                int(status),
                problem["request_id"],
            )
        return _problem_response(problem), status

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        # Werkzeug may provide HTML-ish description; normalize for clients
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        problem = _as_problem(status=status, code=error_code, message=message)
        level = log.error if status >= 500 else log.warning
        level(
            "HTTPException: code=%s status=%s detail=%s request_id=%s",
            error_code,
            status,
            message,
            problem["request_id"],
        )
        return _problem_response(problem), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        problem = _as_problem(
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )
        log.warning("ValidationError: request_id=%s", problem["request_id"])
        return _problem_response(problem), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        # E.g., transient DB connectivity, deadlocks, etc.
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.error("OperationalError: request_id=%s", problem["request_id"], exc_info=True)
        return _problem_response(problem), HTTPStatus.SERVICE_UNAVAILABLE

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error("Unhandled exception: request_id=%s", problem["request_id"], exc_info=True)
        return _problem_response(problem), HTTPStatus.INTERNAL_SERVER_ERROR
