"""
stepup.services._shared.ports
=============================

Collection of *ports* (hexagonal interfaces) that define the contracts
between the OTP/session core and its infrastructure.

Modules
-------
- :mod:`clock`:
    Defines :class:`~.Clock`: injectable time source.

- :mod:`ephemeral_store`:
    Defines :class:`~.EphemeralStore`: TTL key-value store with an atomic
    read-modify-write primitive.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore` and :class:`~.RefreshTokenRecord`:
    durable refresh-token persistence with compare-and-set revocation.

- :mod:`token_issuer`:
    Defines :class:`~.TokenIssuer`: mints signed access/refresh strings.

- :mod:`notifier`:
    Defines :class:`~.Notifier`: out-of-band code delivery.

- :mod:`user_directory`:
    Defines :class:`~.UserDirectory`: subject lookup for callers of the core.

Design Notes
------------
All these ports follow *Dependency Inversion Principle (DIP)* to keep
the service layer independent from implementation details.
Concrete adapters (Redis, SQLAlchemy, JWT, mail) live under ``stepup.infra``;
the in-memory doubles next to each port back the unit tests.
"""

from __future__ import annotations

from .clock import Clock, ManualClock, SystemClock
from .ephemeral_store import (
    DELETE,
    KEEP,
    EphemeralStore,
    InMemoryEphemeralStore,
    UpdateAction,
)
from .notifier import Notifier, OutboxNotifier, PurposeContext
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
)
from .token_issuer import MintedTokens, StubTokenIssuer, TokenIssuer
from .user_directory import SubjectView, UserDirectory

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "EphemeralStore",
    "InMemoryEphemeralStore",
    "UpdateAction",
    "KEEP",
    "DELETE",
    "Notifier",
    "OutboxNotifier",
    "PurposeContext",
    "RefreshTokenStore",
    "RefreshTokenRecord",
    "InMemoryRefreshTokenStore",
    "TokenIssuer",
    "MintedTokens",
    "StubTokenIssuer",
    "UserDirectory",
    "SubjectView",
]
