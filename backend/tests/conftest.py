"""Pytest fixtures: a fresh app and in-memory SQLite database per test.

Services commit through the Flask-scoped session, so isolation comes from a
new engine per app rather than from rolled-back SAVEPOINTs.
"""

from __future__ import annotations

import os

import pytest
from stepup.core.config import TestingConfig
from stepup.core.extensions import db as _db  # Flask-SQLAlchemy instance
from stepup.factory import create_app  # application factory under test
from stepup.services._shared.ports import OutboxNotifier


@pytest.fixture()
def outbox() -> OutboxNotifier:
    """Capture code deliveries instead of logging them."""
    return OutboxNotifier()


@pytest.fixture()
def app(outbox):
    """Create a Flask application configured for testing.

    The app context stays pushed for the whole test; tables are created on
    entry and dropped on exit.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestingConfig, notifier=outbox, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()
    app.extensions["otp_dispatcher"].shutdown(wait=True)


@pytest.fixture()
def db(app):
    return _db


@pytest.fixture()
def session(db):
    """Flask-scoped SQLAlchemy session bound to the test app."""
    return db.session


@pytest.fixture()
def client(app):
    return app.test_client()


# -- Hook up Factory Boy to the SQLAlchemy session -----------------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper when the test uses the database."""
    from tests.factories import SQLAlchemySession

    if "session" in request.fixturenames:
        SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)
