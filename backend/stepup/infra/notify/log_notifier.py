"""Development notifier that writes OTP messages to the log."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from stepup.core.logger import mask_identity
from stepup.services._shared.ports import Notifier, PurposeContext

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OtpMessage:
    subject: str
    greeting: str
    body: str


_MESSAGES: dict[str, OtpMessage] = {
    "REGISTRATION": OtpMessage(
        subject="Your Verification Code",
        greeting="Hello!",
        body=(
            "We received a request to verify your email address. "
            "Please use the verification code below to complete your registration."
        ),
    ),
    "LOGIN": OtpMessage(
        subject="Your Login Verification Code",
        greeting="Welcome back!",
        body=(
            "We detected a login attempt to your account. "
            "Please use the verification code below to complete your login."
        ),
    ),
    "PASSWORD_RESET": OtpMessage(
        subject="Your Password Reset Code",
        greeting="Hello!",
        body="Please use the verification code below to reset your password.",
    ),
}


def render(code: str, context: PurposeContext) -> tuple[str, str]:
    """Return ``(subject, text)`` for a code delivery."""
    msg = _MESSAGES.get(context.purpose, _MESSAGES["LOGIN"])
    text = (
        f"{msg.greeting}\n\n{msg.body}\n\n    {code}\n\n"
        f"This code expires in {context.expires_in_minutes} minutes."
    )
    return msg.subject, text


class LogNotifier(Notifier):
    """
    Log-only transport for development and tests.

    :param reveal_codes: Include the code itself in the log line. Keep it
        off anywhere logs are shipped.
    """

    def __init__(self, *, reveal_codes: bool = False) -> None:
        self.reveal_codes = reveal_codes

    def send(self, identity: str, code: str, context: PurposeContext) -> None:
        subject, text = render(code, context)
        if self.reveal_codes:
            log.info("[otp][console] to=%s subject=%r\n%s", identity, subject, text)
        else:
            log.info("[otp][console] to=%s subject=%r", mask_identity(identity), subject)
