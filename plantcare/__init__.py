from __future__ import annotations

import atexit
import logging
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from plantcare.blueprints.api import collections_api
from plantcare.config import AppConfig, load_config, setup_logging
from plantcare.domain.exceptions import PlantCareError
from plantcare.utils.http import error_response, exception_response, safe_error


def create_app(config_overrides: dict[str, Any] | None = None, *, container=None) -> Flask:
    """Build the Flask app serving the authoritative collection store.

    The server always persists to an offline store in ``data_dir``: it is the
    remote backend other processes talk to, so it never proxies further.
    """
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key.lower() if key != "DEBUG" else key, value)
        # Re-run validation on the overridden values
        config = AppConfig(**{k: getattr(config, k) for k in AppConfig.__dataclass_fields__ if not k.startswith("_")})

    setup_logging(debug=config.DEBUG, log_path=config.log_path, level=config.log_level)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    if container is None:
        from plantcare.services.container import ServiceContainer

        container = ServiceContainer.build(config, force_offline=True)
    flask_app.config["CONTAINER"] = container
    atexit.register(container.shutdown)

    # Global JSON error handler for anything that escapes safe_route
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        context = f"{request.method} {request.path}"
        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context=context)
            return error_response(exc.description or "Request failed", status)
        if isinstance(exc, PlantCareError):
            return exception_response(exc, context=context)
        return safe_error(exc, 500, context=f"unhandled {context}")

    flask_app.register_blueprint(collections_api, url_prefix="/api")

    logging.getLogger(__name__).info(
        "PlantCare API ready (data dir %s, cache %s)",
        config.data_dir,
        "on" if config.cache_enabled else "off",
    )
    return flask_app


__all__ = ["create_app"]
