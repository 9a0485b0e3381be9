"""Service wiring: build the OTP/session core once per app."""

from __future__ import annotations

import atexit
import logging
from datetime import timedelta

from flask import Flask, current_app

from stepup.core import extensions
from stepup.core.extensions import db
from stepup.infra.jwt.flask_jwt_token_issuer import JWTTokenIssuer
from stepup.infra.notify.log_notifier import LogNotifier
from stepup.infra.redis.redis_ephemeral_store import RedisEphemeralStore
from stepup.infra.sqlalchemy.refresh_token_store import SQLAlchemyRefreshTokenStore
from stepup.services._shared.ports import EphemeralStore, InMemoryEphemeralStore, Notifier
from stepup.services.auth import AuthService
from stepup.services.notifications import NotificationDispatcher
from stepup.services.otp import LockoutGuard, OtpChallengeService, OtpConfig
from stepup.services.session import SessionConfig, SessionService

log = logging.getLogger(__name__)

EXTENSION_KEY = "auth_service"


def build_ephemeral_store(app: Flask) -> EphemeralStore:
    """Redis when configured; otherwise a process-local store."""
    client = app.extensions.get("redis_client")
    if client is not None:
        return RedisEphemeralStore(client)
    log.warning("ephemeral_store.in_memory reason=REDIS_URL unset (single process only)")
    return InMemoryEphemeralStore()


def init_app(app: Flask, *, notifier: Notifier | None = None) -> AuthService:
    """
    Build the services from ``app.config`` and register them on the app.

    :param notifier: Code transport; defaults to :class:`LogNotifier`, which
        reveals codes only in debug or testing mode.
    :raises ValueError: If an OTP/session setting is invalid.
    """
    cfg = app.config
    otp_cfg = OtpConfig.from_mapping(cfg)
    session_cfg = SessionConfig.from_mapping(cfg)

    store = build_ephemeral_store(app)
    transport = notifier or LogNotifier(reveal_codes=bool(cfg.get("DEBUG") or cfg.get("TESTING")))
    dispatcher = NotificationDispatcher(
        transport,
        max_workers=int(cfg.get("NOTIFIER_MAX_WORKERS", 2)),
        queue_capacity=int(cfg.get("NOTIFIER_QUEUE_CAPACITY", 100)),
    )
    atexit.register(dispatcher.shutdown, wait=False)

    otp = OtpChallengeService(
        store=store,
        dispatcher=dispatcher,
        lockout=LockoutGuard(store),
        config=otp_cfg,
    )
    sessions = SessionService(
        token_issuer=JWTTokenIssuer(
            access_expires=timedelta(seconds=int(cfg.get("ACCESS_TOKEN_LIFETIME_SECONDS", 900))),
            refresh_expires=session_cfg.refresh_lifetime,
        ),
        refresh_store=SQLAlchemyRefreshTokenStore(db.session),
        config=session_cfg,
    )
    service = AuthService(otp=otp, sessions=sessions)

    app.extensions[EXTENSION_KEY] = service
    app.extensions["otp_dispatcher"] = dispatcher
    log.info(
        "services.ready store=%s redis=%s",
        type(store).__name__,
        extensions.redis_client is not None,
    )
    return service


def get_auth_service() -> AuthService:
    """Return the :class:`AuthService` bound to the current app."""
    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError as exc:
        raise RuntimeError("Services are not initialized. Call init_app() first.") from exc
