"""
Print Agent package

This module provides an application factory with minimal wiring:
- Creates a Flask app exposing the print API, lifecycle control and health
- Enables CORS for any origin (the POS front-end is served from elsewhere)
- Assigns a request id per request for log correlation
- Serialises PrintAgentError subclasses to JSON with their status code
- Attaches the AgentContext under app.extensions["print_agent"]
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Optional

from flask import Flask, g, jsonify
from flask_cors import CORS

from print_agent.core.errors import PrintAgentError

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def _set_request_id() -> None:
    g.request_id = getattr(g, "request_id", None) or uuid.uuid4().hex


def _handle_agent_error(exc: PrintAgentError):
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error, exc.message)
    else:
        logger.info("%s: %s", exc.error, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def create_app(context=None, config_overrides: Optional[dict] = None) -> Flask:
    """
    Application factory.

    Parameters:
    - context: the AgentContext to serve. If None, one is built from
      load_settings() with the platform's default printer source and transports.
    - config_overrides: values to inject into app.config after defaults

    Returns:
    - Flask app instance
    """
    from print_agent.web import api_bp, control_bp, health_bp

    if context is None:
        from print_agent.core.config import load_settings
        from print_agent.runtime.context import AgentContext

        context = AgentContext(load_settings())

    app = Flask("print_agent")
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("PRINTAGENT_MAX_CONTENT_LENGTH", 5 * 1024 * 1024))
    if config_overrides:
        app.config.update(config_overrides)

    CORS(app, origins="*", methods=["GET", "POST"], allow_headers=["Content-Type"])

    app.extensions["print_agent"] = context

    # Strict slashes off for more forgiving routing
    app.url_map.strict_slashes = False

    @app.before_request
    def _before_request():
        _set_request_id()

    app.register_error_handler(PrintAgentError, _handle_agent_error)

    for bp in (api_bp, control_bp, health_bp):
        app.register_blueprint(bp)

    app.logger.info("Print agent app created (production=%s)", context.settings.production)
    return app


__all__ = ["create_app", "__version__"]
