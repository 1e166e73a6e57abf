import threading
from typing import Any, Dict, List

import pytest

from print_agent import create_app
from print_agent.core.config import Settings
from print_agent.core.errors import TransportError
from print_agent.printing.discovery import PrinterSource, StaticPrinterSource
from print_agent.printing.html import HtmlPrintBackend
from print_agent.printing.transport import Transport
from print_agent.runtime.context import AgentContext


class FakeTransport(Transport):
    def __init__(self, error: Exception = None, gate: threading.Event = None):
        self.sent: List[tuple] = []
        self.error = error
        self.gate = gate
        self.entered = threading.Event()

    def send(self, buffer, printer_name):
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        self.sent.append((printer_name, buffer))


class FakeHtmlBackend(HtmlPrintBackend):
    def __init__(self, result: Any = True):
        self.result = result
        self.calls: List[tuple] = []

    def print_html(self, printer_name, html, width_mm, height_mm, timeout):
        self.calls.append((printer_name, html, width_mm, height_mm, timeout))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class BrokenSource(PrinterSource):
    def list_raw(self):
        raise OSError("spooler service stopped")


PRINTERS = [
    {"name": "POS-80", "isDefault": True, "options": {"media": "80x297mm"}},
    {"name": "Microsoft Print to PDF", "options": {}},
]


def _make(transport=None, html_backend=None, source=None, **settings):
    ctx = AgentContext(
        Settings(**settings),
        printer_source=source or StaticPrinterSource(PRINTERS),
        transport=transport or FakeTransport(),
        html_backend=html_backend or FakeHtmlBackend(),
    )
    app = create_app(ctx)
    app.config.update(TESTING=True)
    return app, ctx


def _thermal_body(**overrides) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "printer": {"name": "POS-80"},
        "data": {
            "displayName": "Dhaka Deli",
            "invoiceNumber": "INV-7",
            "createdAt": "2024-03-05T14:07:00",
            "items": [{"itemName": "Tea", "quantity": 1, "unitPrice": 30}],
        },
        "totals": {"totalQuantity": 1, "subtotal": 30, "grandTotal": 30, "totalPaid": 30, "balanceDue": 0},
        "widthMM": 80,
    }
    body.update(overrides)
    return body


def test_list_printers_returns_wire_shape():
    app, _ = _make()
    resp = app.test_client().get("/list-printers")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data[0] == {
        "id": "POS-80",
        "name": "POS-80",
        "isDefault": True,
        "widthMM": 80.0,
        "heightMM": 297.0,
        "dpi": 203,
        "type": "physical",
        "supportsThermal": True,
    }
    assert data[1]["type"] == "pdf"
    assert "widthMM" not in data[1]


def test_list_printers_failure_is_500():
    app, _ = _make(source=BrokenSource())
    resp = app.test_client().get("/list-printers")
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to list printers"}


def test_cors_headers_for_any_origin():
    app, _ = _make()
    resp = app.test_client().get("/list-printers", headers={"Origin": "http://pos.example.com"})
    assert resp.headers.get("Access-Control-Allow-Origin") == "*"


def test_print_thermal_success_sends_escpos():
    transport = FakeTransport()
    app, ctx = _make(transport=transport, footer_text="Custom footer")
    resp = app.test_client().post("/print-thermal", json=_thermal_body())
    assert resp.status_code == 204
    [(name, buf)] = transport.sent
    assert name == "POS-80"
    assert b"Dhaka Deli" in buf
    assert b"Custom footer" in buf
    assert ctx.guard.active() == {}


def test_print_thermal_accepts_numeric_header_and_customer_fields():
    transport = FakeTransport()
    app, _ = _make(transport=transport)
    body = _thermal_body()
    body["data"]["location"] = {"binNumber": 123456789, "phone": 1700000000}
    body["data"]["customer"] = {"name": "Rahim", "phone": 1811111111, "addresses": [{"zipcode": 1212}]}
    resp = app.test_client().post("/print-thermal", json=body)
    assert resp.status_code == 204
    [(_, buf)] = transport.sent
    assert b"BIN: 123456789" in buf
    assert b"Phone: 1811111111" in buf
    assert b"Address: 1212" in buf


def test_print_thermal_tolerates_null_labels_and_string_totals():
    transport = FakeTransport()
    app, _ = _make(transport=transport)
    body = _thermal_body(
        totals={
            "totalQuantity": 1,
            "subtotal": 30,
            "charges": [{"chargeLabel": None, "calculatedValue": 5}],
            "grandTotal": 35,
            "payments": [{"method": None, "amount": 20}],
            "totalPaid": "20",
            "balanceDue": "15",
        },
    )
    body["data"]["items"] = [{"itemName": None, "variantName": "Small", "quantity": 1, "unitPrice": 30}]
    resp = app.test_client().post("/print-thermal", json=body)
    assert resp.status_code == 204
    [(_, buf)] = transport.sent
    assert b"Small" in buf
    assert b"PAID" in buf
    assert b"DUE" in buf


@pytest.mark.parametrize("missing", ["printer", "data", "totals", "widthMM"])
def test_print_thermal_missing_fields(missing):
    transport = FakeTransport()
    app, _ = _make(transport=transport)
    body = _thermal_body()
    body.pop(missing)
    resp = app.test_client().post("/print-thermal", json=body)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Missing required fields: printer, data, totals, widthMM"}
    assert transport.sent == []


def test_print_thermal_malformed_payload_is_400():
    app, _ = _make()
    resp = app.test_client().post("/print-thermal", json=_thermal_body(widthMM="wide"))
    assert resp.status_code == 400
    assert resp.get_json()["error"]


def test_print_thermal_transport_failure_is_500_and_releases_lease():
    transport = FakeTransport(error=TransportError("Failed to connect to emulator: refused"))
    app, ctx = _make(transport=transport)
    resp = app.test_client().post("/print-thermal", json=_thermal_body())
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "Thermal print operation failed"
    assert body["message"] == "Failed to connect to emulator: refused"
    assert "supports thermal printing" in body["details"]
    assert ctx.guard.active() == {}


def test_print_thermal_unexpected_error_is_500():
    app, ctx = _make(transport=FakeTransport(error=RuntimeError("boom")))
    resp = app.test_client().post("/print-thermal", json=_thermal_body())
    assert resp.status_code == 500
    assert resp.get_json()["message"] == "boom"
    assert ctx.guard.active() == {}


def test_busy_destination_is_409_and_first_job_completes():
    gate = threading.Event()
    transport = FakeTransport(gate=gate)
    app, ctx = _make(transport=transport)
    results = {}

    def _first():
        results["first"] = app.test_client().post("/print-thermal", json=_thermal_body()).status_code

    t = threading.Thread(target=_first)
    t.start()
    assert transport.entered.wait(5)

    second = app.test_client().post("/print-thermal", json=_thermal_body())
    assert second.status_code == 409
    assert second.get_json()["error"] == "Print job already in progress"
    assert second.get_json()["message"] == "Please wait for the current print job to complete"

    html = app.test_client().post("/print", json={"printer": {"name": "POS-80"}, "html": "<p>x</p>"})
    assert html.status_code == 409

    gate.set()
    t.join(5)
    assert results["first"] == 204
    assert ctx.guard.active() == {}


def test_locking_disabled_admits_concurrent_jobs():
    gate = threading.Event()
    transport = FakeTransport(gate=gate)
    app, _ = _make(transport=transport, lock_destinations=False)

    t = threading.Thread(target=lambda: app.test_client().post("/print-thermal", json=_thermal_body()))
    t.start()
    assert transport.entered.wait(5)
    gate.set()
    resp = app.test_client().post("/print-thermal", json=_thermal_body())
    t.join(5)
    assert resp.status_code == 204
    assert len(transport.sent) == 2


def test_print_html_success():
    backend = FakeHtmlBackend(True)
    app, _ = _make(html_backend=backend, html_print_timeout=12.0)
    resp = app.test_client().post(
        "/print", json={"printer": {"name": "Office"}, "html": "<h1>Hi</h1>", "widthMM": 80, "heightMM": 200},
    )
    assert resp.status_code == 204
    assert backend.calls == [("Office", "<h1>Hi</h1>", 80.0, 200.0, 12.0)]


def test_print_html_refusal_is_still_success():
    app, ctx = _make(html_backend=FakeHtmlBackend(False))
    resp = app.test_client().post("/print", json={"printer": {"name": "Office"}, "html": "<p/>"})
    assert resp.status_code == 204
    assert ctx.guard.active() == {}


def test_print_html_timeout_is_500():
    app, ctx = _make(html_backend=FakeHtmlBackend(TransportError("HTML print timed out after 30 seconds")))
    resp = app.test_client().post("/print", json={"printer": {"name": "Office"}, "html": "<p/>"})
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "Print operation failed"
    assert "timed out" in body["message"]
    assert body["details"] == "Please check if the printer is available and connected"
    assert ctx.guard.active() == {}


@pytest.mark.parametrize("printer", [None, {}, {"name": ""}, "POS-80"])
def test_print_html_invalid_printer(printer):
    backend = FakeHtmlBackend()
    app, _ = _make(html_backend=backend)
    resp = app.test_client().post("/print", json={"printer": printer, "html": "<p/>"})
    assert resp.status_code == 400
    assert resp.get_json() == {
        "error": "Invalid printer configuration",
        "message": "Printer information is missing or invalid",
    }
    assert backend.calls == []


def test_print_html_requires_document():
    app, _ = _make()
    resp = app.test_client().post("/print", json={"printer": {"name": "Office"}})
    assert resp.status_code == 400
    assert set(resp.get_json()) == {"error"}


def test_shutdown_acknowledges_then_tears_down():
    app, ctx = _make(shutdown_delay=0.01)
    done = threading.Event()
    ctx.on_shutdown(done.set)
    resp = app.test_client().post("/shutdown")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "shutting_down"}
    assert done.wait(2)
    assert ctx.shutting_down


def test_healthz_reports_state():
    app, _ = _make(production=False, lock_destinations=True)
    resp = app.test_client().get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {
        "status": "ok",
        "production": False,
        "lock_destinations": True,
        "active_jobs": [],
        "websocket_clients": 0,
    }


def test_two_apps_do_not_share_leases():
    gate = threading.Event()
    t1 = FakeTransport(gate=gate)
    app1, _ = _make(transport=t1)
    app2, ctx2 = _make()

    th = threading.Thread(target=lambda: app1.test_client().post("/print-thermal", json=_thermal_body()))
    th.start()
    assert t1.entered.wait(5)
    resp = app2.test_client().post("/print-thermal", json=_thermal_body())
    gate.set()
    th.join(5)
    assert resp.status_code == 204
