"""Durable refresh token records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stepup.core.extensions import db

from .base import PKMixin


class RefreshToken(PKMixin, db.Model):
    """
    One issued refresh token.

    ``revoked`` only ever goes from false to true; rows are removed by
    housekeeping, not by the session flow.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_refresh_tokens_user_id", "user_id"),)
