"""Repository base for SQLAlchemy 2.x.

Repositories stay persistence-only: they never commit or roll back.
Services own the transaction through a Unit of Work.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import select
from sqlalchemy.orm import Session

from stepup.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic repository for a single aggregate.

    Subclasses MUST define ``model``.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``stepup.core.extensions``.
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def add(self, instance: E) -> E:
        """Stage a new entity and flush to materialize the PK."""
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single entity by primary key.

        :raises RuntimeError: If the model has no ``id`` attribute.
        """
        pk_attr = getattr(self.model, "id", None)
        if pk_attr is None:
            raise RuntimeError("BaseRepository.get requires a detectable PK attribute.")
        result = self.session.execute(select(self.model).where(pk_attr == entity_id))
        return cast(E | None, result.scalars().first())

    def flush(self) -> None:
        self.session.flush()
