from __future__ import annotations

"""
Print API consumed by the point-of-sale front-end.

Endpoints:
- GET  /list-printers  : classified printer list
- POST /print          : hand an HTML document to the host print path (204)
- POST /print-thermal  : render a receipt to ESC/POS and deliver it (204)

Errors are JSON bodies of the form {"error", "message"?, "details"?}. A busy
destination is 409; nothing is queued.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from print_agent.core.errors import PrintAgentError, TransportError, ValidationError
from print_agent.runtime.context import AgentContext
from . import schemas

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

HTML_FAILURE_DETAILS = "Please check if the printer is available and connected"
THERMAL_FAILURE_DETAILS = "Please check if the printer is available, connected, and supports thermal printing"
THERMAL_REQUIRED_FIELDS = ("printer", "data", "totals", "widthMM")


def _context() -> AgentContext:
    return current_app.extensions["print_agent"]


def _json_error(msg: str, code: int = 400, **extra):
    body = {"error": msg}
    body.update({k: v for k, v in extra.items() if v})
    return jsonify(body), code


@api_bp.get("/list-printers")
def list_printers():
    try:
        printers = _context().printers_payload()
    except Exception as e:
        logger.error("Failed to list printers: %s", e)
        return _json_error("Failed to list printers", 500)
    return jsonify(printers)


@api_bp.post("/print")
def print_html():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    printer = data.get("printer")
    if not isinstance(printer, dict) or not printer.get("name"):
        raise ValidationError("Printer information is missing or invalid", error="Invalid printer configuration")

    try:
        req = schemas.HtmlPrintRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("", error=schemas.first_error_message(e)) from e

    try:
        _context().print_html(req.printer.name, req.html, req.width_mm, req.height_mm)
    except TransportError as e:
        logger.error("Print error for %s: %s", req.printer.name, e.message)
        raise TransportError(e.message, details=e.details or HTML_FAILURE_DETAILS) from e
    return "", 204


@api_bp.post("/print-thermal")
def print_thermal():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    if not all(data.get(k) for k in THERMAL_REQUIRED_FIELDS):
        raise ValidationError("", error="Missing required fields: " + ", ".join(THERMAL_REQUIRED_FIELDS))

    try:
        req = schemas.ThermalPrintRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("", error=schemas.first_error_message(e)) from e

    ctx = _context()
    try:
        size = ctx.print_thermal(req.printer.name, req.data, req.totals, req.width_mm)
    except PrintAgentError as e:
        if e.status_code != 500:
            raise
        logger.error("Thermal print error for %s: %s", req.printer.name, e.message)
        return _json_error(
            "Thermal print operation failed", 500, message=e.message, details=THERMAL_FAILURE_DETAILS,
        )
    except Exception as e:
        logger.exception("Thermal print error for %s", req.printer.name)
        return _json_error(
            "Thermal print operation failed",
            500,
            message=str(e) or "Unknown thermal print error occurred",
            details=THERMAL_FAILURE_DETAILS,
        )
    logger.info("Thermal receipt sent to %s (%d bytes)", req.printer.name, size)
    return "", 204
