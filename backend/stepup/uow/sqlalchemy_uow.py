"""
SQLAlchemy implementation of a Unit of Work for Flask.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from stepup.core.extensions import db
from stepup.repositories import UserRepository


class SQLAlchemyUnitOfWork:
    """
    Read-write Unit of Work over the Flask-scoped session.

    All repositories share one session, so a use-case commits or rolls back
    as a whole: commit on clean exit, rollback on any exception.
    """

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = session if session is not None else db.session
        self.users = UserRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
