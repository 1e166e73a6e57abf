"""
Printer discovery and classification.

OS enumeration is delegated to a PrinterSource that returns raw records:

    {"name": str, "displayName": str, "isDefault": bool,
     "options": {"media": "...", "media-default": "...", "ppi": "..."}}

classify_printers() turns those into PrinterDescriptor values, separating
physical printers from virtual/PDF ones and recovering paper dimensions from
the media description when the driver exposes one.
"""

from __future__ import annotations

import logging
import re
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from print_agent.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_DPI = 203

VIRTUAL_PRINTER_NAMES = (
    "Microsoft Print to PDF",
    "Microsoft XPS Document Writer",
    "Adobe PDF",
    "CutePDF Writer",
    "PDFCreator",
    "Foxit Reader PDF Printer",
    "Bullzip PDF Printer",
    "OneNote",
    "Fax",
)

_MEDIA_MM = re.compile(r"([\d.]+)x([\d.]+)mm", re.IGNORECASE)


class PrinterKind(str, Enum):
    PHYSICAL = "physical"
    VIRTUAL = "pdf"


@dataclass(frozen=True)
class PrinterDescriptor:
    id: str
    display_name: str
    is_default: bool
    width_mm: Optional[float]
    height_mm: Optional[float]
    dpi: int
    kind: PrinterKind

    @property
    def supports_raw_thermal(self) -> bool:
        return self.kind is PrinterKind.PHYSICAL

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape expected by the front-end; unknown dimensions are omitted."""
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.display_name,
            "isDefault": self.is_default,
            "dpi": self.dpi,
            "type": self.kind.value,
            "supportsThermal": self.supports_raw_thermal,
        }
        if self.width_mm is not None:
            data["widthMM"] = self.width_mm
        if self.height_mm is not None:
            data["heightMM"] = self.height_mm
        return data


def _parse_float(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def parse_media_dimensions(media: str) -> tuple[Optional[float], Optional[float]]:
    match = _MEDIA_MM.search(media or "")
    if not match:
        return None, None
    return _parse_float(match.group(1)), _parse_float(match.group(2))


def is_virtual_printer(name: str) -> bool:
    lowered = name.lower()
    return any(v.lower() in lowered for v in VIRTUAL_PRINTER_NAMES)


def _parse_dpi(value: Any) -> int:
    try:
        dpi = int(float(value))
    except (TypeError, ValueError):
        return DEFAULT_DPI
    return dpi if dpi > 0 else DEFAULT_DPI


def classify_printer(raw: Mapping[str, Any]) -> PrinterDescriptor:
    options = raw.get("options") or {}
    name = str(raw.get("name", ""))
    display_name = str(raw.get("displayName") or name)
    width_mm, height_mm = parse_media_dimensions(str(options.get("media") or options.get("media-default") or ""))
    return PrinterDescriptor(
        id=name,
        display_name=display_name,
        is_default=bool(raw.get("isDefault", False)),
        width_mm=width_mm,
        height_mm=height_mm,
        dpi=_parse_dpi(options.get("ppi", DEFAULT_DPI)),
        kind=PrinterKind.VIRTUAL if is_virtual_printer(display_name) else PrinterKind.PHYSICAL,
    )


def classify_printers(raw_printers: Sequence[Mapping[str, Any]]) -> List[PrinterDescriptor]:
    return [classify_printer(raw) for raw in raw_printers]


# ---------------------------------------------------------------------------
# Sources


class PrinterSource(ABC):
    """Enumerates printers known to the OS as raw records."""

    @abstractmethod
    def list_raw(self) -> List[Dict[str, Any]]: ...

    def list_printers(self) -> List[PrinterDescriptor]:
        return classify_printers(self.list_raw())


class StaticPrinterSource(PrinterSource):
    """Fixed list of raw records from the static_printers setting."""

    def __init__(self, records: Sequence[Mapping[str, Any]]) -> None:
        self.records = [dict(r) for r in records]

    def list_raw(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.records]


def _parse_lpoptions(output: str) -> Dict[str, str]:
    """
    Parse `lpoptions -p NAME` output: space separated key=value pairs, values
    optionally quoted.
    """
    options: Dict[str, str] = {}
    for match in re.finditer(r"([\w-]+)=('[^']*'|\"[^\"]*\"|\S+)", output):
        options[match.group(1)] = match.group(2).strip("'\"")
    return options


class CupsPrinterSource(PrinterSource):
    """Linux/macOS printers via the CUPS command line tools."""

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        result = subprocess.run(list(args), capture_output=True, text=True, timeout=self.timeout, check=False)
        return result.stdout

    def list_raw(self) -> List[Dict[str, Any]]:
        names: List[str] = []
        for line in self._run("lpstat", "-p").splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "printer":
                names.append(parts[1])

        default = None
        default_out = self._run("lpstat", "-d")
        if ":" in default_out:
            default = default_out.split(":", 1)[1].strip() or None

        records = []
        for name in names:
            options = _parse_lpoptions(self._run("lpoptions", "-p", name))
            records.append(
                {
                    "name": name,
                    "displayName": options.get("printer-info") or name,
                    "isDefault": name == default,
                    "options": options,
                },
            )
        return records


class Win32PrinterSource(PrinterSource):
    """Windows printers via pywin32's win32print."""

    def list_raw(self) -> List[Dict[str, Any]]:
        import win32print  # type: ignore[import-not-found]

        try:
            default = win32print.GetDefaultPrinter()
        except Exception:
            default = None

        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        records = []
        for info in win32print.EnumPrinters(flags, None, 2):
            name = info["pPrinterName"]
            options: Dict[str, Any] = {}
            devmode = info.get("pDevMode")
            if devmode is not None and getattr(devmode, "PaperWidth", 0) and getattr(devmode, "PaperLength", 0):
                # DEVMODE paper sizes are in tenths of a millimetre
                options["media"] = f"{devmode.PaperWidth / 10:g}x{devmode.PaperLength / 10:g}mm"
            if devmode is not None and getattr(devmode, "PrintQuality", 0) > 0:
                options["ppi"] = devmode.PrintQuality
            records.append({"name": name, "displayName": name, "isDefault": name == default, "options": options})
        return records


def default_printer_source(settings: Optional[Settings] = None) -> PrinterSource:
    if settings is not None and settings.static_printers:
        return StaticPrinterSource(settings.static_printers)
    if sys.platform == "win32":
        return Win32PrinterSource()
    return CupsPrinterSource()


__all__ = [
    "CupsPrinterSource",
    "DEFAULT_DPI",
    "PrinterDescriptor",
    "PrinterKind",
    "PrinterSource",
    "StaticPrinterSource",
    "VIRTUAL_PRINTER_NAMES",
    "Win32PrinterSource",
    "classify_printer",
    "classify_printers",
    "default_printer_source",
    "is_virtual_printer",
    "parse_media_dimensions",
]
