"""
Port arbitration.

Before listening, a starting agent makes sure it is the only owner of the
HTTP and WebSocket ports:

    CHECK_PORTS -> FREE -> LISTEN
                -> BUSY -> GRACEFUL_SHUTDOWN_REQUEST -> RECHECK -> FREE -> LISTEN
                                                              -> STILL_BUSY -> FORCE_RECLAIM -> RECHECK
                                                                 -> FREE -> LISTEN
                                                                 -> STILL_BUSY -> RETRY_OR_FAIL

The whole sequence runs at most `attempts` times with a fixed back-off, then
StartupError is raised for the runner to report.
"""

from __future__ import annotations

import logging
import socket
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

import requests

from print_agent.core.config import Settings
from print_agent.core.errors import ReclaimUnsupported, StartupError
from print_agent.runtime.reaper import ProcessReaper, reaper_for_platform

logger = logging.getLogger(__name__)


class ArbitrationState(str, Enum):
    START = "START"
    CHECK_PORTS = "CHECK_PORTS"
    FREE = "FREE"
    BUSY = "BUSY"
    GRACEFUL_SHUTDOWN_REQUEST = "GRACEFUL_SHUTDOWN_REQUEST"
    RECHECK = "RECHECK"
    STILL_BUSY = "STILL_BUSY"
    FORCE_RECLAIM = "FORCE_RECLAIM"
    RETRY_OR_FAIL = "RETRY_OR_FAIL"
    LISTEN = "LISTEN"
    RUNNING = "RUNNING"


def port_is_free(host: str, port: int) -> bool:
    """
    Bind and immediately release. Uses the same reuse semantics as the
    listening servers so TIME_WAIT leftovers do not read as busy.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        if sys.platform == "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)  # type: ignore[attr-defined]
        else:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def request_shutdown(url: str, timeout: float) -> bool:
    """POST /shutdown to an incumbent agent. True if it acknowledged."""
    try:
        resp = requests.post(url, timeout=timeout)
    except requests.RequestException as e:
        logger.info("Shutdown request to %s failed: %s", url, e)
        return False
    logger.info("Shutdown request to %s answered %d", url, resp.status_code)
    return resp.ok


@dataclass
class ArbitrationResult:
    attempts: int
    reclaimed: bool
    trail: List[ArbitrationState] = field(default_factory=list)


class PortArbiter:
    def __init__(
        self,
        ports: Sequence[int],
        *,
        host: str = "127.0.0.1",
        shutdown_url: Optional[str] = None,
        reaper: Optional[ProcessReaper] = None,
        attempts: int = 3,
        backoff: float = 2.0,
        grace_wait: float = 1.5,
        shutdown_timeout: float = 2.0,
        probe: Callable[[str, int], bool] = port_is_free,
        shutdown: Callable[[str, float], bool] = request_shutdown,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.ports = list(ports)
        self.host = host
        self.shutdown_url = shutdown_url or f"http://{host}:{self.ports[0]}/shutdown"
        self.reaper = reaper or reaper_for_platform()
        self.attempts = max(1, attempts)
        self.backoff = backoff
        self.grace_wait = grace_wait
        self.shutdown_timeout = shutdown_timeout
        self.probe = probe
        self.shutdown = shutdown
        self.sleep = sleep
        self.trail: List[ArbitrationState] = []

    @classmethod
    def from_settings(cls, settings: Settings, reaper: Optional[ProcessReaper] = None, **kwargs) -> "PortArbiter":
        return cls(
            settings.ports,
            host=settings.host,
            shutdown_url=settings.shutdown_url,
            reaper=reaper,
            attempts=settings.arbitration_attempts,
            backoff=settings.arbitration_backoff,
            grace_wait=settings.grace_wait,
            shutdown_timeout=settings.shutdown_request_timeout,
            **kwargs,
        )

    def _enter(self, state: ArbitrationState) -> None:
        self.trail.append(state)
        logger.debug("Port arbitration: %s", state.value)

    def mark_running(self) -> None:
        self._enter(ArbitrationState.RUNNING)

    def busy_ports(self) -> List[int]:
        return [p for p in self.ports if not self.probe(self.host, p)]

    def _recheck(self) -> List[int]:
        self._enter(ArbitrationState.RECHECK)
        self.sleep(self.grace_wait)
        return self.busy_ports()

    def _listen(self, attempt: int, reclaimed: bool) -> ArbitrationResult:
        self._enter(ArbitrationState.FREE)
        self._enter(ArbitrationState.LISTEN)
        return ArbitrationResult(attempts=attempt, reclaimed=reclaimed, trail=list(self.trail))

    def acquire(self) -> ArbitrationResult:
        self.trail = []
        self._enter(ArbitrationState.START)
        busy: List[int] = []
        for attempt in range(1, self.attempts + 1):
            self._enter(ArbitrationState.CHECK_PORTS)
            busy = self.busy_ports()
            if not busy:
                return self._listen(attempt, reclaimed=False)

            self._enter(ArbitrationState.BUSY)
            logger.warning("Ports %s in use (attempt %d/%d); asking the running agent to shut down", busy, attempt, self.attempts)
            self._enter(ArbitrationState.GRACEFUL_SHUTDOWN_REQUEST)
            self.shutdown(self.shutdown_url, self.shutdown_timeout)
            busy = self._recheck()
            if not busy:
                return self._listen(attempt, reclaimed=False)

            self._enter(ArbitrationState.STILL_BUSY)
            self._enter(ArbitrationState.FORCE_RECLAIM)
            try:
                self.reaper.reclaim(busy)
            except ReclaimUnsupported:
                logger.error("Ports %s are held and cannot be reclaimed on this platform", busy)
                raise
            except Exception as e:
                logger.error("Forced reclamation of ports %s failed: %s", busy, e)
            busy = self._recheck()
            if not busy:
                return self._listen(attempt, reclaimed=True)

            self._enter(ArbitrationState.STILL_BUSY)
            self._enter(ArbitrationState.RETRY_OR_FAIL)
            if attempt < self.attempts:
                self.sleep(self.backoff)

        raise StartupError(f"Ports {busy} still in use after {self.attempts} attempts")


__all__ = [
    "ArbitrationResult",
    "ArbitrationState",
    "PortArbiter",
    "port_is_free",
    "request_shutdown",
]
