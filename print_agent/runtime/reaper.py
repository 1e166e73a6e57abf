"""
Process reapers: find and terminate whatever owns the agent's ports.

Only the platforms where psutil can see socket owners without elevation get
a real implementation. Elsewhere reclaim() raises ReclaimUnsupported so the
caller fails loudly instead of pretending the ports were freed.
"""

from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Iterable, List, Set

import psutil

from print_agent.core.errors import ReclaimUnsupported

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 3.0


def terminate_processes(pids: Iterable[int], timeout: float = TERMINATE_GRACE_SECONDS) -> List[int]:
    """
    terminate() each process, wait up to timeout, kill() the survivors.
    Returns the pids that were signalled.
    """
    procs = []
    for pid in pids:
        if pid == os.getpid():
            continue
        try:
            proc = psutil.Process(pid)
            logger.warning("Terminating process %d (%s)", pid, proc.name())
            proc.terminate()
            procs.append(proc)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.error("Access denied terminating process %d", pid)

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        try:
            logger.warning("Process %d did not exit; killing", proc.pid)
            proc.kill()
        except psutil.NoSuchProcess:
            pass
    return [p.pid for p in procs]


def wait_for_exit(pid: int, timeout: float) -> bool:
    """True once pid is gone (or never existed), False if it outlived timeout."""
    try:
        psutil.Process(pid).wait(timeout=timeout)
    except psutil.NoSuchProcess:
        return True
    except psutil.TimeoutExpired:
        return False
    return True


class ProcessReaper(ABC):
    @abstractmethod
    def owners(self, ports: Iterable[int]) -> Set[int]:
        """PIDs listening on any of ports."""

    @abstractmethod
    def reclaim(self, ports: Iterable[int]) -> List[int]:
        """Terminate the owners of ports; returns the pids signalled."""

    def terminate(self, pids: Iterable[int]) -> List[int]:
        return terminate_processes(pids)


class PsutilReaper(ProcessReaper):
    def owners(self, ports: Iterable[int]) -> Set[int]:
        wanted = set(ports)
        pids: Set[int] = set()
        for conn in psutil.net_connections(kind="tcp"):
            if conn.pid and conn.laddr and conn.laddr.port in wanted and conn.status == psutil.CONN_LISTEN:
                pids.add(conn.pid)
        pids.discard(os.getpid())
        return pids

    def reclaim(self, ports: Iterable[int]) -> List[int]:
        ports = list(ports)
        pids = self.owners(ports)
        if not pids:
            logger.info("No process found listening on ports %s", ports)
            return []
        logger.warning("Reclaiming ports %s from pids %s", ports, sorted(pids))
        return self.terminate(pids)


class UnsupportedReaper(ProcessReaper):
    def __init__(self, platform: str = sys.platform) -> None:
        self.platform = platform

    def owners(self, ports: Iterable[int]) -> Set[int]:
        return set()

    def reclaim(self, ports: Iterable[int]) -> List[int]:
        raise ReclaimUnsupported(f"Forced port reclamation is not supported on {self.platform}")


def reaper_for_platform(platform: str = sys.platform) -> ProcessReaper:
    if platform == "win32" or platform.startswith("linux"):
        return PsutilReaper()
    return UnsupportedReaper(platform)


__all__ = [
    "ProcessReaper",
    "PsutilReaper",
    "UnsupportedReaper",
    "reaper_for_platform",
    "terminate_processes",
    "wait_for_exit",
]
