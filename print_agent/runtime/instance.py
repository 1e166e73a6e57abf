"""
Single-instance lock and takeover.

The lock is a PID file created with O_EXCL. When a newer agent starts while
an older one still holds it, the newer one wins: it asks the holder to shut
down over HTTP, and if that does not work it reclaims the ports and ends the
holder process, then takes the lock. A lock left behind by a dead process is
simply replaced.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

import psutil

from print_agent.core.config import Settings
from print_agent.core.errors import StartupError
from print_agent.runtime.arbitration import request_shutdown
from print_agent.runtime.reaper import ProcessReaper, wait_for_exit

logger = logging.getLogger(__name__)


class InstanceLock:
    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self.acquired = False

    def holder(self) -> Optional[int]:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def _create(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(str(os.getpid()))
        return True

    def acquire(self) -> bool:
        if self._create():
            self.acquired = True
            return True
        pid = self.holder()
        if pid == os.getpid() or pid is None or not psutil.pid_exists(pid):
            logger.info("Replacing stale instance lock %s (pid=%s)", self.path, pid)
            self.path.unlink(missing_ok=True)
            self.acquired = self._create()
            return self.acquired
        return False

    def release(self) -> None:
        if self.acquired and self.holder() == os.getpid():
            self.path.unlink(missing_ok=True)
        self.acquired = False


def take_over_instance(
    lock: InstanceLock,
    settings: Settings,
    reaper: ProcessReaper,
    *,
    shutdown: Callable[[str, float], bool] = request_shutdown,
    exit_timeout: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Acquire the instance lock, displacing a running agent if needed.

    Raises StartupError when the lock is still held afterwards.
    """
    if lock.acquire():
        return

    pid = lock.holder()
    logger.warning("Another agent instance (pid=%s) is running; taking over", pid)

    if shutdown(settings.shutdown_url, settings.shutdown_request_timeout):
        exited = pid is None or wait_for_exit(pid, exit_timeout)
    else:
        exited = False

    if not exited:
        logger.warning("Running instance did not shut down; reclaiming ports %s", list(settings.ports))
        reaper.reclaim(settings.ports)
        if pid is not None:
            reaper.terminate([pid])
        sleep(settings.shutdown_delay)

    if not lock.acquire():
        raise StartupError(f"Instance lock {lock.path} is still held by pid {lock.holder()}")
    logger.info("Took over from previous instance (pid=%s)", pid)


__all__ = ["InstanceLock", "take_over_instance"]
