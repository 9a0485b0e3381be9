"""Application factory wiring Flask extensions, services and blueprints."""

from __future__ import annotations

from flask import Flask

from stepup.core.config import BaseConfig, get_config
from stepup.core.logger import configure_logging
from stepup.core.logger import init_app as init_logging
from stepup.services._shared.ports import Notifier


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    notifier: Notifier | None = None,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config object or import path; defaults to ``APP_ENV`` selection.
    :param notifier: Optional code transport override (tests use an outbox).
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from stepup.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from stepup.core import services

    services.init_app(app, notifier=notifier)

    from stepup.api import init_app as init_api

    init_api(app)

    from stepup.core import errors

    errors.init_app(app)

    return app
