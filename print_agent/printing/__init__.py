"""
Printing subsystem for the print agent.

- layout: pure text layout helpers (money, dates, padding, wrapping, widths)
- sink / receipt: receipt rendering onto an ESC/POS command sink
- discovery: OS printer enumeration and classification
- jobs: per-destination leases and once-only completions
- transport / html: delivery to the emulator, the raw spooler, or the HTML print path
"""

from .discovery import PrinterDescriptor, PrinterKind, PrinterSource, classify_printers, default_printer_source
from .html import HtmlPrintBackend, default_html_backend
from .jobs import Completion, JobGuard, JobKind, Lease, PrintJob, run_with_timeout
from .layout import (
    Align,
    Column,
    format_currency,
    format_date,
    format_money,
    format_time,
    group_thousands,
    pad_center,
    pad_left,
    pad_right,
    resolve_character_width,
    table_row,
    table_rows,
    two_column_line,
    wrap_text,
)
from .models import ReceiptModel, TotalsModel
from .receipt import build_thermal_buffer, render_receipt
from .sink import CommandSink, EscposSink, TextScale
from .transport import EmulatorTransport, RawSpoolerTransport, Transport, transport_for

__all__ = [
    "Align",
    "Column",
    "CommandSink",
    "Completion",
    "EmulatorTransport",
    "EscposSink",
    "HtmlPrintBackend",
    "JobGuard",
    "JobKind",
    "Lease",
    "PrintJob",
    "PrinterDescriptor",
    "PrinterKind",
    "PrinterSource",
    "RawSpoolerTransport",
    "ReceiptModel",
    "TextScale",
    "TotalsModel",
    "Transport",
    "build_thermal_buffer",
    "classify_printers",
    "default_html_backend",
    "default_printer_source",
    "format_currency",
    "format_date",
    "format_money",
    "format_time",
    "group_thousands",
    "pad_center",
    "pad_left",
    "pad_right",
    "render_receipt",
    "resolve_character_width",
    "run_with_timeout",
    "table_row",
    "table_rows",
    "transport_for",
    "two_column_line",
    "wrap_text",
]
