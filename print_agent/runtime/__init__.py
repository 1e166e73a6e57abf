"""
Process-level runtime: port arbitration, single-instance takeover, the
WebSocket status hub and the AgentContext that ties a running agent together.
"""

from .arbitration import ArbitrationResult, ArbitrationState, PortArbiter, port_is_free, request_shutdown
from .context import AgentContext
from .hub import StatusHub
from .instance import InstanceLock, take_over_instance
from .reaper import ProcessReaper, PsutilReaper, UnsupportedReaper, reaper_for_platform

__all__ = [
    "AgentContext",
    "ArbitrationResult",
    "ArbitrationState",
    "InstanceLock",
    "PortArbiter",
    "ProcessReaper",
    "PsutilReaper",
    "StatusHub",
    "UnsupportedReaper",
    "port_is_free",
    "reaper_for_platform",
    "request_shutdown",
    "take_over_instance",
]
