# comments in English; reST docstrings
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session

from stepup.models.refresh_token import RefreshToken
from stepup.services._shared.errors import StorageCorruption
from stepup.services._shared.ports import RefreshTokenRecord, RefreshTokenStore


@dataclass(slots=True)
class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh token store.

    Each operation runs in its own transaction and commits before returning,
    so a saved record is durable before its token leaves the service.

    :param session: SQLAlchemy session (Flask-SQLAlchemy's scoped session in the app).
    """

    session: Session | scoped_session

    # -------------------- helpers --------------------

    @staticmethod
    def _aware(dt: datetime) -> datetime:
        # SQLite drops tzinfo: values are written as UTC, so label them back
        return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    # -------------------- API ------------------------

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        # Column select bypasses the identity map: always the committed state
        stmt = select(
            RefreshToken.token,
            RefreshToken.user_id,
            RefreshToken.issued_at,
            RefreshToken.expires_at,
            RefreshToken.revoked,
        ).where(RefreshToken.token == token)
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        try:
            return RefreshTokenRecord(
                token=row.token,
                subject_id=int(row.user_id),
                issued_at=self._aware(row.issued_at),
                expires_at=self._aware(row.expires_at),
                revoked=bool(row.revoked),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise StorageCorruption(key=token, reason=f"unreadable row ({exc})") from exc

    def save(self, record: RefreshTokenRecord) -> None:
        self.session.add(
            RefreshToken(
                token=record.token,
                user_id=record.subject_id,
                issued_at=record.issued_at,
                expires_at=record.expires_at,
                revoked=record.revoked,
            )
        )
        self._commit()

    def revoke_if_active(self, token: str) -> bool:
        """
        Compare-and-set ``revoked`` in a single ``UPDATE``.

        The ``revoked = false`` predicate makes the row count the arbiter:
        concurrent callers cannot both see one affected row.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self._commit()
        return result.rowcount == 1

    def delete_by_user(self, subject_id: int) -> int:
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.user_id == subject_id)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self._commit()
        return int(result.rowcount or 0)
