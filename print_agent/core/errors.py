"""
Error taxonomy for the print agent.

Every per-request failure is a PrintAgentError subclass carrying the HTTP
status it maps to, so the web layer can serialise it without branching.
StartupError is raised before any request is served and is reported through
the runner's exit status instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PrintAgentError(Exception):
    status_code = 500
    error = "Print agent error"

    def __init__(self, message: str, *, error: Optional[str] = None, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PrintAgentError):
    """Missing or malformed request fields. Nothing has been touched yet."""

    status_code = 400
    error = "Invalid request"


class ConflictError(PrintAgentError):
    status_code = 409
    error = "Print job already in progress"


class DestinationBusy(ConflictError):
    def __init__(self, destination: str) -> None:
        super().__init__(
            "Please wait for the current print job to complete",
            details=f"destination={destination}",
        )
        self.destination = destination


class TransportError(PrintAgentError):
    """The buffer was built but delivery failed or was not confirmed in time."""

    status_code = 500
    error = "Print operation failed"


class StartupError(Exception):
    """Service ports could not be claimed after the bounded retries."""


class ReclaimUnsupported(StartupError):
    """Forced port reclamation is not implemented on this platform."""


__all__ = [
    "ConflictError",
    "DestinationBusy",
    "PrintAgentError",
    "ReclaimUnsupported",
    "StartupError",
    "TransportError",
    "ValidationError",
]
