# tests/unit/services/test_auth_service.py
from __future__ import annotations

import random

import pytest
from sqlalchemy.exc import IntegrityError
from stepup.models.user import User
from stepup.repositories.user import UserRepository
from stepup.services._shared.errors import (
    IdentityConflict,
    InvalidCode,
    InvalidCredentials,
    LockedOut,
    NotFoundError,
    TokenRevoked,
)
from stepup.services._shared.ports import (
    InMemoryEphemeralStore,
    InMemoryRefreshTokenStore,
    ManualClock,
    OutboxNotifier,
    StubTokenIssuer,
)
from stepup.services.auth import AuthResponse, AuthService, LoginIn, RegisterIn
from stepup.services.auth.service import LOGIN_MESSAGE, REGISTERED_MESSAGE, RESENT_MESSAGE
from stepup.services.otp import OtpChallengeService, OtpPurpose
from stepup.services.session import SessionService

from tests.factories.user import DEFAULT_PASSWORD, UserFactory


class _InlineDispatcher:
    def __init__(self, notifier):
        self.notifier = notifier

    def submit(self, identity, code, context):
        self.notifier.send(identity, code, context)
        return True


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def mailbox() -> OutboxNotifier:
    return OutboxNotifier()


@pytest.fixture()
def service(session, clock, mailbox) -> AuthService:
    """
    Build an AuthService wired to in-memory doubles for the OTP and session core.

    .. note::
       User rows go through the real Unit of Work on the test database.
    """
    otp = OtpChallengeService(
        store=InMemoryEphemeralStore(clock=clock),
        dispatcher=_InlineDispatcher(mailbox),
        clock=clock,
        rng=random.Random(7),
    )
    sessions = SessionService(
        token_issuer=StubTokenIssuer(),
        refresh_store=InMemoryRefreshTokenStore(),
        clock=clock,
    )
    return AuthService(otp=otp, sessions=sessions, clock=clock)


def _register(service, email="new.user@example.com"):
    return service.register(
        RegisterIn(
            first_name="Ada",
            last_name="Lovelace",
            email=email,
            password="s3cretpass",
            phone_number="+34600000000",
        )
    )


# -------------------------------- Tests ----------------------------------- #
def test_register_creates_unverified_user_and_sends_code(service, session, mailbox):
    receipt = _register(service, "  New.User@Example.com ")

    assert receipt.message == REGISTERED_MESSAGE
    assert receipt.masked_identity == "n***r@example.com"
    assert receipt.expires_in_minutes == 5

    user = session.query(User).filter_by(email="new.user@example.com").one()
    assert user.is_verified is False
    assert user.verify_password("s3cretpass")
    assert mailbox.sent[-1].context.purpose == OtpPurpose.REGISTRATION.value


def test_register_conflict(service):
    _register(service)
    with pytest.raises(IdentityConflict) as exc:
        _register(service, "NEW.user@example.com")
    assert exc.value.identity == "new.user@example.com"


def test_register_conflict_when_unique_constraint_fires(service, session, mailbox, monkeypatch):
    """A concurrent registration passes the existence check but loses on the unique email."""
    _register(service, "dup@example.com")
    sent_before = len(mailbox.sent)
    monkeypatch.setattr(UserRepository, "exists_by_email", lambda self, email: False)

    with pytest.raises(IdentityConflict) as exc:
        _register(service, "dup@example.com")

    assert exc.value.identity == "dup@example.com"
    assert isinstance(exc.value.__cause__, IntegrityError)
    assert len(mailbox.sent) == sent_before
    # the session was rolled back and stays usable
    assert session.query(User).filter_by(email="dup@example.com").count() == 1


def test_verify_after_register_marks_user_verified(service, session, mailbox, clock):
    _register(service)
    code = mailbox.last_code_for("new.user@example.com")

    result = service.verify_otp_and_login("new.user@example.com", code)

    assert isinstance(result, AuthResponse)
    assert result.tokens.token_type == "Bearer"
    assert result.subject.first_name == "Ada"
    assert result.subject.identity == "new.user@example.com"
    user = session.get(User, result.subject.id)
    assert user.is_verified is True
    assert user.email_verified_at is not None
    assert user.last_login_at is not None


def test_login_sends_code_for_valid_credentials(service, mailbox):
    user = UserFactory(email="login@example.com")

    receipt = service.login(LoginIn(email="login@example.com", password=DEFAULT_PASSWORD))

    assert receipt.message == LOGIN_MESSAGE
    assert mailbox.sent[-1].identity == user.email
    assert mailbox.sent[-1].context.purpose == "LOGIN"


def test_login_invalid_credentials(service, mailbox):
    UserFactory(email="login@example.com")
    with pytest.raises(InvalidCredentials):
        service.login(LoginIn(email="login@example.com", password="wrong-password"))
    with pytest.raises(InvalidCredentials):
        service.login(LoginIn(email="missing@example.com", password="x"))
    assert mailbox.sent == []


def test_wrong_codes_lock_login(service, mailbox):
    UserFactory(email="lock@example.com")
    service.login(LoginIn(email="lock@example.com", password=DEFAULT_PASSWORD))
    good = mailbox.last_code_for("lock@example.com")
    bad = "000000" if good != "000000" else "111111"

    with pytest.raises(InvalidCode):
        service.verify_otp_and_login("lock@example.com", bad)
    with pytest.raises(InvalidCode):
        service.verify_otp_and_login("lock@example.com", bad)
    with pytest.raises(LockedOut):
        service.verify_otp_and_login("lock@example.com", bad)
    with pytest.raises(LockedOut):
        service.login(LoginIn(email="lock@example.com", password=DEFAULT_PASSWORD))


def test_verify_for_deleted_user(service, session, mailbox):
    user = UserFactory(email="gone@example.com")
    service.login(LoginIn(email="gone@example.com", password=DEFAULT_PASSWORD))
    session.delete(user)
    session.commit()

    with pytest.raises(NotFoundError):
        service.verify_otp_and_login("gone@example.com", mailbox.last_code_for("gone@example.com"))


def test_resend_uses_resend_message(service, mailbox):
    _register(service)
    receipt = service.resend_otp("new.user@example.com")
    assert receipt.message == RESENT_MESSAGE
    assert len(mailbox.sent) == 2
    assert mailbox.sent[-1].context.purpose == "REGISTRATION"


def test_refresh_rotates_and_blocks_reuse(service, mailbox):
    UserFactory(email="r@example.com", first_name="Rita")
    service.login(LoginIn(email="r@example.com", password=DEFAULT_PASSWORD))
    first = service.verify_otp_and_login("r@example.com", mailbox.last_code_for("r@example.com"))

    second = service.refresh(first.tokens.refresh_token)
    assert second.tokens.refresh_token != first.tokens.refresh_token
    assert second.subject.first_name == "Rita"

    with pytest.raises(TokenRevoked):
        service.refresh(first.tokens.refresh_token)


def test_logout_revokes_refresh_token(service, mailbox):
    UserFactory(email="out@example.com")
    service.login(LoginIn(email="out@example.com", password=DEFAULT_PASSWORD))
    pair = service.verify_otp_and_login(
        "out@example.com", mailbox.last_code_for("out@example.com")
    ).tokens

    service.logout(pair.refresh_token)
    service.logout(pair.refresh_token)

    with pytest.raises(TokenRevoked):
        service.refresh(pair.refresh_token)
