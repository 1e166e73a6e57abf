from types import SimpleNamespace

import pytest

from print_agent.core.config import settings_from_mapping
from print_agent.printing import discovery
from print_agent.printing.discovery import (
    CupsPrinterSource,
    PrinterKind,
    StaticPrinterSource,
    classify_printer,
    classify_printers,
    default_printer_source,
    is_virtual_printer,
    parse_media_dimensions,
)


def test_parse_media_dimensions_case_insensitive():
    assert parse_media_dimensions("Custom.80x297mm") == (80.0, 297.0)
    assert parse_media_dimensions("custom_58X210MM_58x210mm") == (58.0, 210.0)
    assert parse_media_dimensions("iso_a4_210x297mm") == (210.0, 297.0)
    assert parse_media_dimensions("na_letter_8.5x11in") == (None, None)
    assert parse_media_dimensions("") == (None, None)


@pytest.mark.parametrize(
    "name",
    ["Microsoft Print to PDF", "microsoft xps document writer", "Send To OneNote 2016", "Fax", "My Adobe PDF copy"],
)
def test_virtual_printers_are_detected_by_substring(name):
    assert is_virtual_printer(name)


def test_physical_printer_classification():
    p = classify_printer(
        {
            "name": "POS-80",
            "displayName": "POS-80 Thermal",
            "isDefault": True,
            "options": {"media": "Custom.80x3276mm", "ppi": "180"},
        }
    )
    assert p.id == "POS-80"
    assert p.display_name == "POS-80 Thermal"
    assert p.is_default is True
    assert (p.width_mm, p.height_mm) == (80.0, 3276.0)
    assert p.dpi == 180
    assert p.kind is PrinterKind.PHYSICAL
    assert p.supports_raw_thermal is True


def test_media_default_fallback_and_default_dpi():
    p = classify_printer({"name": "Label", "options": {"media-default": "58x40mm"}})
    assert (p.width_mm, p.height_mm) == (58.0, 40.0)
    assert p.dpi == 203
    assert p.display_name == "Label"
    assert p.is_default is False


def test_virtual_printer_wire_shape_omits_unknown_dimensions():
    [p] = classify_printers([{"name": "Microsoft Print to PDF", "options": {}}])
    assert p.kind is PrinterKind.VIRTUAL
    assert p.supports_raw_thermal is False
    assert p.to_dict() == {
        "id": "Microsoft Print to PDF",
        "name": "Microsoft Print to PDF",
        "isDefault": False,
        "dpi": 203,
        "type": "pdf",
        "supportsThermal": False,
    }


def test_wire_shape_includes_known_dimensions():
    p = classify_printer({"name": "POS", "options": {"media": "80x200mm"}})
    data = p.to_dict()
    assert data["widthMM"] == 80.0
    assert data["heightMM"] == 200.0
    assert data["type"] == "physical"
    assert data["supportsThermal"] is True


def test_static_source_returns_descriptors():
    source = StaticPrinterSource([{"name": "A"}, {"name": "Microsoft Print to PDF"}])
    printers = source.list_printers()
    assert [p.id for p in printers] == ["A", "Microsoft Print to PDF"]
    assert [p.kind for p in printers] == [PrinterKind.PHYSICAL, PrinterKind.VIRTUAL]


def test_cups_source_parses_lpstat_and_lpoptions(monkeypatch):
    outputs = {
        ("lpstat", "-p"): "printer POS80 is idle.  enabled since Mon\nprinter Office_PDF disabled since Tue\n",
        ("lpstat", "-d"): "system default destination: POS80\n",
        ("lpoptions", "-p", "POS80"): "media=Custom.80x297mm ppi=203 printer-info='POS 80 Thermal' device-uri=usb://x",
        ("lpoptions", "-p", "Office_PDF"): "printer-info='Adobe PDF' media=iso_a4_210x297mm",
    }

    def _fake_run(args, **kwargs):
        return SimpleNamespace(stdout=outputs[tuple(args)], returncode=0)

    monkeypatch.setattr(discovery.subprocess, "run", _fake_run)

    raw = CupsPrinterSource().list_raw()
    assert [r["name"] for r in raw] == ["POS80", "Office_PDF"]
    assert raw[0]["displayName"] == "POS 80 Thermal"
    assert raw[0]["isDefault"] is True
    assert raw[1]["isDefault"] is False

    printers = classify_printers(raw)
    assert printers[0].width_mm == 80.0
    assert printers[0].kind is PrinterKind.PHYSICAL
    assert printers[1].kind is PrinterKind.VIRTUAL


def test_configured_static_printers_replace_os_discovery():
    settings = settings_from_mapping(
        {"static_printers": [{"name": "POS-58", "options": {"media": "Custom.58x210mm"}}, "Kitchen"]},
    )
    source = default_printer_source(settings)
    assert isinstance(source, StaticPrinterSource)
    assert [(p.id, p.width_mm) for p in source.list_printers()] == [("POS-58", 58.0), ("Kitchen", None)]


def test_os_discovery_without_static_printers(monkeypatch):
    monkeypatch.setattr(discovery.sys, "platform", "linux")
    assert isinstance(default_printer_source(settings_from_mapping({})), CupsPrinterSource)
