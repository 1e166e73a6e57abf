"""
Per-destination job admission.

A destination (printer name) is a single serial resource: two raw byte
streams interleaved on the same device produce garbage. JobGuard hands out at
most one Lease per destination; hold() wraps an admitted job so every exit
path (success, printer failure, transport error, timeout) releases exactly
once.

Completion is the single-result handle used to turn callback- or
thread-driven operations into something a request handler can wait on with
a timeout. Only the first resolution counts.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from print_agent.core.errors import DestinationBusy, TransportError

logger = logging.getLogger(__name__)


class JobKind(str, Enum):
    GENERIC_HTML = "html"
    THERMAL_ESCPOS = "thermal"


@dataclass
class PrintJob:
    target: str
    kind: JobKind
    payload: Any = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass(frozen=True)
class Lease:
    destination: str
    token: str


class JobGuard:
    """
    Registry of in-flight destinations.

    With enabled=False every admission succeeds and nothing is recorded,
    leaving serialisation to the OS spooler.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._active: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)

    def _token(self, destination: str) -> str:
        return f"{destination}-{time.monotonic_ns()}-{next(self._counter)}"

    def admit(self, destination: str) -> Lease:
        lease = Lease(destination, self._token(destination))
        if not self.enabled:
            return lease
        with self._lock:
            if destination in self._active:
                logger.info("Print job already in progress for printer: %s", destination)
                raise DestinationBusy(destination)
            self._active[destination] = lease.token
        return lease

    def release(self, lease: Lease) -> bool:
        """Drop the lease if it is still the current one. Returns True if it was."""
        with self._lock:
            if self._active.get(lease.destination) != lease.token:
                return False
            del self._active[lease.destination]
            return True

    def is_busy(self, destination: str) -> bool:
        with self._lock:
            return destination in self._active

    def active(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._active)

    @contextmanager
    def hold(self, job: PrintJob) -> Iterator[Lease]:
        lease = self.admit(job.target)
        logger.info("Admitted %s job for %s", job.kind.value, job.target)
        try:
            yield lease
        finally:
            self.release(lease)


class Completion:
    """
    Once-only result slot.

    resolve()/reject() may be called from any thread, any number of times;
    only the first call sets the outcome.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._future: Future = Future()
        self._lock = threading.Lock()

    @property
    def done(self) -> bool:
        return self._future.done()

    def _settle(self, setter: Callable[[Any], None], value: Any) -> bool:
        with self._lock:
            if self._future.done():
                logger.warning("%s completed more than once; ignoring", self.label)
                return False
            setter(value)
            return True

    def resolve(self, value: Any = None) -> bool:
        return self._settle(self._future.set_result, value)

    def reject(self, exc: BaseException) -> bool:
        return self._settle(self._future.set_exception, exc)

    def wait(self, timeout: float) -> Any:
        try:
            return self._future.result(timeout=timeout)
        except FutureTimeout:
            self.reject(TransportError(f"{self.label} timed out after {timeout:g} seconds"))
            raise TransportError(f"{self.label} timed out after {timeout:g} seconds") from None


def run_with_timeout(label: str, fn: Callable[[], Any], timeout: float) -> Any:
    """
    Run fn on a daemon thread and wait at most timeout seconds for it.

    The thread is not killed on timeout; its late result is discarded by the
    Completion guard.
    """
    completion = Completion(label)

    def _target() -> None:
        try:
            completion.resolve(fn())
        except Exception as e:
            completion.reject(e)

    threading.Thread(target=_target, daemon=True, name=f"print-agent-{label}").start()
    return completion.wait(timeout)


__all__ = ["Completion", "JobGuard", "JobKind", "Lease", "PrintJob", "run_with_timeout"]
