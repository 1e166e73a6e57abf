"""
Config utilities for the print agent.

Responsibilities:
- Resolve config/state paths with environment and XDG support
- Load the optional JSON config file
- Merge defaults, file values and PRINTAGENT_* environment overrides into Settings
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

HTTP_PORT = 21321
WS_PORT = 21322
EMULATOR_PORT = 8100


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/printagent/config.json
    2) ~/.config/printagent/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "printagent" / "config.json")
    return str(Path.home() / ".config" / "printagent" / "config.json")


def default_lock_path() -> str:
    """
    Resolve the single-instance lock file using:
    1) $XDG_STATE_HOME/printagent/agent.lock
    2) ~/.local/state/printagent/agent.lock
    """
    xdg = os.environ.get("XDG_STATE_HOME")
    if xdg:
        return str(Path(xdg) / "printagent" / "agent.lock")
    return str(Path.home() / ".local" / "state" / "printagent" / "agent.lock")


def get_config_path() -> str:
    """
    Return the config path honoring PRINTAGENT_CONFIG_PATH override.
    """
    return os.environ.get("PRINTAGENT_CONFIG_PATH", default_config_path())


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    http_port: int = HTTP_PORT
    ws_port: int = WS_PORT
    production: bool = True
    lock_destinations: bool = True
    emulator_host: str = "127.0.0.1"
    emulator_port: int = EMULATOR_PORT
    emulator_timeout: float = 10.0
    spooler_timeout: float = 30.0
    html_print_timeout: float = 30.0
    shutdown_request_timeout: float = 2.0
    shutdown_delay: float = 0.5
    arbitration_attempts: int = 3
    arbitration_backoff: float = 2.0
    grace_wait: float = 1.5
    ws_ping_interval: float = 30.0
    printer_refresh_interval: float = 10.0
    footer_text: str = "Powered by ProSystem"
    lock_path: str = ""
    log_file: str = ""
    # raw printer records listed instead of asking the OS, e.g. [{"name": "POS-80"}]
    static_printers: Tuple[Dict[str, Any], ...] = ()

    @property
    def ports(self) -> tuple[int, int]:
        return (self.http_port, self.ws_port)

    @property
    def shutdown_url(self) -> str:
        return f"http://{self.host}:{self.http_port}/shutdown"


# Environment variable -> Settings field
_ENV_FIELDS = {
    "PRINTAGENT_HOST": "host",
    "PRINTAGENT_HTTP_PORT": "http_port",
    "PRINTAGENT_WS_PORT": "ws_port",
    "PRINTAGENT_LOCK_DESTINATIONS": "lock_destinations",
    "PRINTAGENT_EMULATOR_HOST": "emulator_host",
    "PRINTAGENT_EMULATOR_PORT": "emulator_port",
    "PRINTAGENT_FOOTER": "footer_text",
    "PRINTAGENT_LOCK_PATH": "lock_path",
    "PRINTAGENT_LOG_FILE": "log_file",
    "PRINTAGENT_REFRESH_INTERVAL": "printer_refresh_interval",
}

_TRUTHY = ("1", "true", "yes", "on")


def _coerce(name: str, value: Any) -> Any:
    kind = Settings.__dataclass_fields__[name].type
    if name == "static_printers":
        if isinstance(value, (str, Mapping)):
            value = [value]
        return tuple(dict(r) if isinstance(r, Mapping) else {"name": str(r)} for r in value)
    if kind == "bool":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUTHY
    if kind == "int":
        return int(value)
    if kind == "float":
        return float(value)
    return str(value)


def settings_from_mapping(values: Mapping[str, Any], base: Optional[Settings] = None) -> Settings:
    """
    Build Settings from a mapping, ignoring unknown keys.
    """
    known = {f.name for f in fields(Settings)}
    updates = {k: _coerce(k, v) for k, v in values.items() if k in known and v is not None}
    return replace(base or Settings(), **updates)


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Defaults, then the JSON config file, then PRINTAGENT_* environment overrides.

    PRINTAGENT_ENV=development selects the TCP emulator path for thermal jobs;
    any other value (or none) means production.
    """
    env = os.environ if env is None else env
    settings = Settings(lock_path=default_lock_path())

    file_values = load_config(path)
    if file_values:
        settings = settings_from_mapping(file_values, settings)

    overrides: Dict[str, Any] = {field: env[var] for var, field in _ENV_FIELDS.items() if env.get(var)}
    if env.get("PRINTAGENT_ENV"):
        overrides["production"] = env["PRINTAGENT_ENV"].strip().lower() != "development"
    return settings_from_mapping(overrides, settings)


__all__ = [
    "EMULATOR_PORT",
    "HTTP_PORT",
    "Settings",
    "WS_PORT",
    "default_config_path",
    "default_lock_path",
    "get_config_path",
    "load_config",
    "load_settings",
    "settings_from_mapping",
]
