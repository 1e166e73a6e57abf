"""
AgentContext: the state one running agent owns.

The lease registry, printer source, transports, WebSocket hub and shutdown
hooks live here instead of in module globals, so several agents (or several
test apps) can exist in one process. The web layer reaches it through
current_app.extensions["print_agent"].
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from print_agent.core.config import Settings
from print_agent.core.errors import TransportError
from print_agent.printing.discovery import PrinterDescriptor, PrinterSource, default_printer_source
from print_agent.printing.html import HtmlPrintBackend, default_html_backend
from print_agent.printing.jobs import JobGuard, JobKind, PrintJob
from print_agent.printing.models import ReceiptModel, TotalsModel
from print_agent.printing.receipt import build_thermal_buffer
from print_agent.printing.transport import Transport, transport_for
from print_agent.runtime.hub import StatusHub

logger = logging.getLogger(__name__)


class AgentContext:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        printer_source: Optional[PrinterSource] = None,
        transport: Optional[Transport] = None,
        html_backend: Optional[HtmlPrintBackend] = None,
        guard: Optional[JobGuard] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.printer_source = printer_source or default_printer_source(self.settings)
        self.transport = transport or transport_for(self.settings)
        self.html_backend = html_backend or default_html_backend()
        self.guard = guard or JobGuard(enabled=self.settings.lock_destinations)
        self.hub: Optional[StatusHub] = None
        self._shutdown_hooks: List[Callable[[], None]] = []
        self._shutdown_started = threading.Event()

    # -- printers ----------------------------------------------------------

    def list_printers(self) -> List[PrinterDescriptor]:
        return self.printer_source.list_printers()

    def printers_payload(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self.list_printers()]

    def broadcast_printers(self) -> None:
        if self.hub is None:
            return
        try:
            printers = self.printers_payload()
        except Exception as e:
            logger.warning("Printer discovery failed: %s", e)
            printers = []
        self.hub.broadcast_printers(printers)

    def create_hub(self) -> StatusHub:
        self.hub = StatusHub(
            self.printers_payload,
            self.settings.host,
            self.settings.ws_port,
            ping_interval=self.settings.ws_ping_interval,
            refresh_interval=self.settings.printer_refresh_interval,
        )
        return self.hub

    # -- jobs --------------------------------------------------------------

    def print_html(self, printer_name: str, html: str, width_mm: Optional[float], height_mm: Optional[float]) -> None:
        """
        Hand an HTML document to the host print path.

        A refusal reported by the host counts as success: the OS print dialog
        is where such failures are shown. Only a timeout or a backend crash
        is an error here.
        """
        job = PrintJob(printer_name, JobKind.GENERIC_HTML, payload={"widthMM": width_mm, "heightMM": height_mm})
        with self.guard.hold(job):
            try:
                queued = self.html_backend.print_html(
                    printer_name, html, width_mm, height_mm, self.settings.html_print_timeout,
                )
            except TransportError:
                raise
            except Exception as e:
                raise TransportError(str(e) or "Unknown print error occurred") from e
            if queued:
                logger.info("HTML job queued for %s", printer_name)
            else:
                logger.info("Print operation completed for %s (may have been cancelled by user)", printer_name)

    def print_thermal(self, printer_name: str, receipt: ReceiptModel, totals: TotalsModel, width_mm: float) -> int:
        """
        Render the receipt to ESC/POS and deliver it. Returns the byte count.
        """
        job = PrintJob(printer_name, JobKind.THERMAL_ESCPOS, payload={"widthMM": width_mm})
        with self.guard.hold(job):
            logger.info("Thermal print request for printer: %s", printer_name)
            buffer = build_thermal_buffer(receipt, totals, width_mm, footer=self.settings.footer_text)
            self.transport.send(buffer, printer_name)
            return len(buffer)

    # -- lifecycle ---------------------------------------------------------

    def on_shutdown(self, hook: Callable[[], None]) -> None:
        self._shutdown_hooks.append(hook)

    @property
    def shutting_down(self) -> bool:
        return self._shutdown_started.is_set()

    def request_shutdown(self) -> None:
        """Tear down after settings.shutdown_delay so the HTTP response can flush."""
        timer = threading.Timer(self.settings.shutdown_delay, self.shutdown)
        timer.daemon = True
        timer.start()

    def shutdown(self) -> None:
        if self._shutdown_started.is_set():
            return
        self._shutdown_started.set()
        logger.info("Shutting down print agent")
        if self.hub is not None:
            self.hub.stop()
        for hook in self._shutdown_hooks:
            try:
                hook()
            except Exception:
                logger.exception("Shutdown hook failed")


__all__ = ["AgentContext"]
