"""Unit of Work implementations."""

from stepup.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

__all__ = ["SQLAlchemyUnitOfWork"]
