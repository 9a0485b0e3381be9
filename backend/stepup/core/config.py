"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env during development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable.

    :param name: Environment variable to inspect.
    :param default: Value returned when the variable is unset or blank.
    :returns: Parsed integer.
    :raises ValueError: If the variable is set but not an integer.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val.strip())


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str
        Key used by ``flask-jwt-extended`` for signing tokens.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string backing users and refresh tokens.
    REDIS_URL: str | None
        Redis connection string for OTP challenges and lock markers. When
        unset, an in-process store is used (single worker only).
    OTP_EXPIRATION_SECONDS: int
        Lifetime of an OTP challenge.
    OTP_MAX_ATTEMPTS: int
        Wrong submissions tolerated before the identity is locked.
    OTP_LOCK_DURATION_SECONDS: int
        How long a lock marker lives.
    OTP_LENGTH: int
        Number of digits in a generated code.
    REFRESH_TOKEN_LIFETIME_DAYS: int
        Lifetime of a refresh token record.
    ACCESS_TOKEN_LIFETIME_SECONDS: int
        Lifetime of an access token (reported as ``expiresInSeconds``).
    NOTIFIER_MAX_WORKERS: int
        Worker threads delivering OTP codes.
    NOTIFIER_QUEUE_CAPACITY: int
        Pending deliveries accepted before new ones are dropped.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT_SECRET_AT_LEAST_32_BYTES")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Ephemeral store
    REDIS_URL = os.getenv("REDIS_URL")

    # OTP challenge
    OTP_EXPIRATION_SECONDS = env_int("OTP_EXPIRATION_SECONDS", 300)
    OTP_MAX_ATTEMPTS = env_int("OTP_MAX_ATTEMPTS", 3)
    OTP_LOCK_DURATION_SECONDS = env_int("OTP_LOCK_DURATION_SECONDS", 900)
    OTP_LENGTH = env_int("OTP_LENGTH", 6)

    # Sessions
    REFRESH_TOKEN_LIFETIME_DAYS = env_int("REFRESH_TOKEN_LIFETIME_DAYS", 7)
    ACCESS_TOKEN_LIFETIME_SECONDS = env_int("ACCESS_TOKEN_LIFETIME_SECONDS", 900)

    # Notification delivery
    NOTIFIER_MAX_WORKERS = env_int("NOTIFIER_MAX_WORKERS", 2)
    NOTIFIER_QUEUE_CAPACITY = env_int("NOTIFIER_QUEUE_CAPACITY", 100)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Never talks to Redis; the in-process ephemeral store is used instead.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = False
    REDIS_URL = None
    PROPAGATE_EXCEPTIONS = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
