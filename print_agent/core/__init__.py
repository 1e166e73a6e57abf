"""
Core utilities for the print agent.

This package groups non-Flask helpers used across the agent:
- config: paths, JSON config loading, Settings resolution
- errors: the request/startup error taxonomy
- logging: Request ID aware logging filters/formatters and root logger config

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    Settings,
    default_config_path,
    default_lock_path,
    get_config_path,
    load_config,
    load_settings,
    settings_from_mapping,
)
from .errors import (
    ConflictError,
    DestinationBusy,
    PrintAgentError,
    ReclaimUnsupported,
    StartupError,
    TransportError,
    ValidationError,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "Settings",
    "default_config_path",
    "default_lock_path",
    "get_config_path",
    "load_config",
    "load_settings",
    "settings_from_mapping",
    # errors
    "ConflictError",
    "DestinationBusy",
    "PrintAgentError",
    "ReclaimUnsupported",
    "StartupError",
    "TransportError",
    "ValidationError",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
