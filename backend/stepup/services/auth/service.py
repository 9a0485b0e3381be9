# stepup/services/auth/service.py
from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError

from stepup.core.logger import mask_identity
from stepup.models.user import User, normalize_email
from stepup.repositories.user import to_subject
from stepup.services._shared.errors import IdentityConflict, InvalidCredentials, NotFoundError
from stepup.services._shared.ports.clock import Clock, SystemClock
from stepup.services.auth.dto import AuthResponse, LoginIn, RegisterIn
from stepup.services.otp.dto import ChallengeReceipt, OtpPurpose
from stepup.services.otp.service import OtpChallengeService
from stepup.services.session.service import SessionService
from stepup.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

REGISTERED_MESSAGE = "Registration successful! Please check your email for verification code."
LOGIN_MESSAGE = "Login successful! Please check your email for verification code."
RESENT_MESSAGE = "New verification code sent to your email"


class AuthService:
    """
    Step-up authentication flow (register / login / verify / refresh / logout).

    Credentials only ever earn an OTP challenge; tokens are issued after the
    challenge is verified. All challenge and token state lives in the OTP and
    session services; this class only touches the user rows.
    """

    def __init__(
        self,
        *,
        otp: OtpChallengeService,
        sessions: SessionService,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param otp: Challenge lifecycle.
        :param sessions: Refresh token lifecycle.
        :param uow_factory: Builds a read-write Unit of Work per use-case.
        :param clock: Time source for user timestamps.
        """
        self.otp = otp
        self.sessions = sessions
        self.uow_factory = uow_factory
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------ #
    # Register / Login
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> ChallengeReceipt:
        """
        Create an unverified account and send a registration code.

        :raises IdentityConflict: If the email is already registered.
        """
        email = normalize_email(dto.email)
        try:
            with self.uow_factory() as uow:
                if uow.users.exists_by_email(email):
                    log.warning("auth.register_conflict identity=%s", mask_identity(email))
                    raise IdentityConflict(identity=email)
                user = User(
                    first_name=dto.first_name,
                    last_name=dto.last_name,
                    email=email,
                    phone_number=dto.phone_number,
                    is_verified=False,
                )
                user.password = dto.password
                uow.users.add(user)
                user_id = user.id
        except IntegrityError as exc:
            # a concurrent registration won the unique email constraint
            log.warning("auth.register_conflict identity=%s", mask_identity(email))
            raise IdentityConflict(identity=email) from exc
        log.info("auth.registered subject_id=%s", user_id, extra={"subject_id": user_id})

        receipt = self.otp.generate(email, OtpPurpose.REGISTRATION)
        return receipt.with_message(REGISTERED_MESSAGE)

    def login(self, dto: LoginIn) -> ChallengeReceipt:
        """
        Check credentials and send a login code.

        :raises InvalidCredentials: If the email/password pair does not match.
        :raises LockedOut: If the identity is locked.
        """
        with self.uow_factory() as uow:
            user = uow.users.authenticate(dto.email, dto.password)
            if user is None:
                log.warning("auth.login_failed identity=%s", mask_identity(dto.email))
                raise InvalidCredentials()
            email = user.email

        receipt = self.otp.generate(email, OtpPurpose.LOGIN)
        return receipt.with_message(LOGIN_MESSAGE)

    # ------------------------------------------------------------------ #
    # Verify
    # ------------------------------------------------------------------ #

    def verify_otp_and_login(self, email: str, code: str) -> AuthResponse:
        """
        Verify the pending code and issue a token pair.

        The first successful verification marks the account verified.

        :raises NotFoundError: If the challenge was valid but the user is gone.
        """
        identity = normalize_email(email)
        self.otp.verify(identity, code)

        with self.uow_factory() as uow:
            user = uow.users.get_by_email(identity)
            if user is None:
                raise NotFoundError("User", identity)
            now = self.clock.now()
            if not user.is_verified:
                user.is_verified = True
                user.email_verified_at = now
                log.info("auth.user_verified subject_id=%s", user.id)
            user.last_login_at = now
            subject = to_subject(user)

        tokens = self.sessions.issue(subject.id)
        return AuthResponse(tokens=tokens, subject=subject)

    def resend_otp(self, email: str) -> ChallengeReceipt:
        receipt = self.otp.resend_otp(normalize_email(email))
        return receipt.with_message(RESENT_MESSAGE)

    # ------------------------------------------------------------------ #
    # Refresh / Logout
    # ------------------------------------------------------------------ #

    def refresh(self, refresh_token: str) -> AuthResponse:
        """
        Rotate a refresh token and return the new pair with its subject.

        :raises NotFoundError: If the token's user no longer exists.
        """
        tokens = self.sessions.rotate(refresh_token)
        with self.uow_factory() as uow:
            subject = uow.users.find_by_id(tokens.subject_id)
        if subject is None:
            raise NotFoundError("User", tokens.subject_id)
        return AuthResponse(tokens=tokens, subject=subject)

    def logout(self, refresh_token: str) -> None:
        self.sessions.revoke(refresh_token)
