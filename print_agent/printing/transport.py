"""
Delivery of finished ESC/POS buffers.

- EmulatorTransport: development path, writes the buffer to a TCP ESC/POS
  emulator (127.0.0.1:8100 by default) through python-escpos's Network printer
- RawSpoolerTransport: production path, submits the bytes as a RAW job to the
  named OS printer (Win32Raw on Windows, LP with -o raw elsewhere)

Every send is bounded by a timeout and failures surface as TransportError.
Nothing is retried here.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from typing import Any

from print_agent.core.config import Settings
from print_agent.core.errors import TransportError
from print_agent.printing.jobs import run_with_timeout

logger = logging.getLogger(__name__)


class Transport(ABC):
    name = "transport"

    @abstractmethod
    def send(self, buffer: bytes, printer_name: str) -> None: ...


def _write_and_close(device: Any, buffer: bytes) -> None:
    device.open()
    try:
        device._raw(buffer)
    finally:
        try:
            device.close()
        except Exception:
            logger.debug("Ignoring close error on %s", type(device).__name__, exc_info=True)


class EmulatorTransport(Transport):
    name = "emulator"

    def __init__(self, host: str = "127.0.0.1", port: int = 8100, timeout: float = 10.0) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    def send(self, buffer: bytes, printer_name: str) -> None:
        from escpos.printer import Network

        logger.info("Development mode: sending to TCP emulator at %s:%d", self.host, self.port)
        device = Network(self.host, port=self.port, timeout=self.timeout)
        try:
            _write_and_close(device, buffer)
        except Exception as e:
            raise TransportError(f"Failed to connect to emulator: {e}") from e
        logger.info("Thermal receipt sent to emulator (%d bytes)", len(buffer))


class RawSpoolerTransport(Transport):
    name = "spooler"

    def __init__(self, timeout: float = 30.0, platform: str = sys.platform) -> None:
        self.timeout = timeout
        self.platform = platform

    def _device(self, printer_name: str):
        if self.platform == "win32":
            from escpos.printer import Win32Raw

            return Win32Raw(printer_name=printer_name)
        from escpos.printer import LP

        return LP(printer_name=printer_name)

    def send(self, buffer: bytes, printer_name: str) -> None:
        logger.info('Production mode: sending to printer "%s" using RAW print', printer_name)

        def _submit() -> None:
            _write_and_close(self._device(printer_name), buffer)

        try:
            run_with_timeout("raw print", _submit, self.timeout)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Print failed: {e}") from e
        logger.info("Thermal receipt sent to printer %s (%d bytes)", printer_name, len(buffer))


def transport_for(settings: Settings) -> Transport:
    if settings.production:
        return RawSpoolerTransport(timeout=settings.spooler_timeout)
    return EmulatorTransport(settings.emulator_host, settings.emulator_port, timeout=settings.emulator_timeout)


__all__ = ["EmulatorTransport", "RawSpoolerTransport", "Transport", "transport_for"]
