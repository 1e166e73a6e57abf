import socket
import threading
import time

import pytest

from print_agent.core.config import Settings
from print_agent.core.errors import TransportError
from print_agent.printing.html import LpHtmlBackend
from print_agent.printing.transport import EmulatorTransport, RawSpoolerTransport, transport_for


class _Listener:
    """Loopback TCP server that collects everything sent on one connection."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.port = self.sock.getsockname()[1]
        self.received = b""
        self.done = threading.Event()
        threading.Thread(target=self._serve, daemon=True).start()

    def _serve(self):
        conn, _ = self.sock.accept()
        with conn:
            while True:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                self.received += chunk
        self.done.set()

    def close(self):
        self.sock.close()


def test_emulator_transport_delivers_bytes():
    listener = _Listener()
    try:
        payload = b"\x1b@hello receipt\n\x1dV\x00"
        EmulatorTransport("127.0.0.1", listener.port, timeout=2).send(payload, "ignored")
        assert listener.done.wait(5)
        assert payload in listener.received
    finally:
        listener.close()


def test_emulator_transport_connection_refused():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    with pytest.raises(TransportError) as ei:
        EmulatorTransport("127.0.0.1", port, timeout=1).send(b"x", "ignored")
    assert ei.value.message.startswith("Failed to connect to emulator")


class _FakeDevice:
    def __init__(self, delay=0.0, fail=None):
        self.delay = delay
        self.fail = fail
        self.written = b""
        self.closed = False

    def open(self):
        if self.fail:
            raise self.fail

    def _raw(self, data):
        time.sleep(self.delay)
        self.written += data

    def close(self):
        self.closed = True


def test_raw_spooler_writes_to_named_printer(monkeypatch):
    device = _FakeDevice()
    seen = []
    transport = RawSpoolerTransport(timeout=2, platform="linux")
    monkeypatch.setattr(transport, "_device", lambda name: seen.append(name) or device)

    transport.send(b"abc", "POS-80")
    assert seen == ["POS-80"]
    assert device.written == b"abc"
    assert device.closed


def test_raw_spooler_failure_is_transport_error(monkeypatch):
    transport = RawSpoolerTransport(timeout=2, platform="linux")
    monkeypatch.setattr(transport, "_device", lambda name: _FakeDevice(fail=OSError("no such printer")))
    with pytest.raises(TransportError) as ei:
        transport.send(b"abc", "Ghost")
    assert ei.value.message == "Print failed: no such printer"


def test_raw_spooler_times_out(monkeypatch):
    transport = RawSpoolerTransport(timeout=0.05, platform="linux")
    monkeypatch.setattr(transport, "_device", lambda name: _FakeDevice(delay=1.0))
    with pytest.raises(TransportError) as ei:
        transport.send(b"abc", "Slow")
    assert "timed out" in ei.value.message


def test_transport_selection_follows_mode():
    dev = transport_for(Settings(production=False, emulator_port=9100))
    assert isinstance(dev, EmulatorTransport)
    assert dev.port == 9100
    assert isinstance(transport_for(Settings(production=True)), RawSpoolerTransport)


def test_lp_html_command_sets_media_and_zero_margins():
    cmd = LpHtmlBackend().build_command("Office", 80, 200)
    assert cmd[:3] == ["lp", "-d", "Office"]
    assert "media=Custom.80x200mm" in cmd
    assert "page-left=0" in cmd
    assert cmd[-1] == "-"
    assert not any(c.startswith("media=") for c in LpHtmlBackend().build_command("Office", None, None))
