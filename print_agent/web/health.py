from __future__ import annotations

"""
Health endpoint for the print agent.

`/healthz` reports the running mode, the locking policy, the destinations
currently leased and how many WebSocket clients are attached. It never
touches a printer.
"""

from typing import Any, Dict

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    ctx = current_app.extensions["print_agent"]
    status: Dict[str, Any] = {
        "status": "shutting_down" if ctx.shutting_down else "ok",
        "production": ctx.settings.production,
        "lock_destinations": ctx.guard.enabled,
        "active_jobs": sorted(ctx.guard.active()),
        "websocket_clients": len(ctx.hub.clients) if ctx.hub is not None else 0,
    }
    return status, 200
