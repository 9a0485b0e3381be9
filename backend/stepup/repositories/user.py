"""User repository: persistence, credential checks and subject lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from stepup.models.user import User, normalize_email
from stepup.repositories.base import BaseRepository
from stepup.services._shared.ports.user_directory import SubjectView, UserDirectory


def to_subject(user: User) -> SubjectView:
    """Project a :class:`User` onto the read-model exposed in token payloads."""
    return SubjectView(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        identity=user.email,
    )


class UserRepository(BaseRepository[User], UserDirectory):
    """Persistence-only repository for :class:`User`.

    It never handles tokens or OTP challenges, only DB-level user management.
    It also serves as the :class:`UserDirectory` used by the auth flow.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :returns: User instance or ``None`` when not found.
        """
        stmt = select(User).where(User.email == normalize_email(email))
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == normalize_email(email))
        return bool(self.session.execute(stmt).first())

    # ---------------------------- UserDirectory ----------------------------

    def find_by_identity(self, identity: str) -> SubjectView | None:
        user = self.get_by_email(identity)
        return to_subject(user) if user else None

    def find_by_id(self, subject_id: int) -> SubjectView | None:
        user = self.get(subject_id)
        return to_subject(user) if user else None

    # ---------------------------- Password ops ----------------------------

    def authenticate(self, email: str, password: str) -> User | None:
        """Authenticate a user by email and password.

        :returns: Authenticated user or ``None`` when credentials fail.
        """
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            return None
        return user
