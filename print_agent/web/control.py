from __future__ import annotations

"""
Lifecycle control. POST /shutdown is how a newer agent asks this one to
step aside; the response goes out before teardown starts.
"""

import logging

from flask import Blueprint, current_app, jsonify

logger = logging.getLogger(__name__)

control_bp = Blueprint("control", __name__)


@control_bp.post("/shutdown")
def shutdown():
    logger.info("Shutdown requested over HTTP")
    current_app.extensions["print_agent"].request_shutdown()
    return jsonify({"status": "shutting_down"}), 200
