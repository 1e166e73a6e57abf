import json

import pytest
from websockets.sync.client import connect

from print_agent.runtime.hub import StatusHub, status_message


@pytest.fixture
def hub():
    state = {"printers": [{"id": "POS-80", "name": "POS-80"}]}
    h = StatusHub(lambda: state["printers"], "127.0.0.1", 0, ping_interval=30, refresh_interval=0)
    h.start()
    yield h
    h.stop()


def _url(h):
    return f"ws://127.0.0.1:{h.port}"


def test_status_message_shape():
    assert json.loads(status_message([])) == {"type": "printer-status", "printers": []}


def test_client_gets_snapshot_on_connect(hub):
    with connect(_url(hub)) as ws:
        msg = json.loads(ws.recv(timeout=5))
    assert msg == {"type": "printer-status", "printers": [{"id": "POS-80", "name": "POS-80"}]}


def test_broadcast_reaches_connected_clients(hub):
    with connect(_url(hub)) as a, connect(_url(hub)) as b:
        a.recv(timeout=5)
        b.recv(timeout=5)
        hub.broadcast_printers([{"id": "New"}])
        assert json.loads(a.recv(timeout=5))["printers"] == [{"id": "New"}]
        assert json.loads(b.recv(timeout=5))["printers"] == [{"id": "New"}]


def test_discovery_failure_sends_empty_list():
    def _broken():
        raise OSError("no spooler")

    h = StatusHub(_broken, "127.0.0.1", 0, refresh_interval=0)
    h.start()
    try:
        with connect(_url(h)) as ws:
            assert json.loads(ws.recv(timeout=5)) == {"type": "printer-status", "printers": []}
    finally:
        h.stop()


def test_periodic_refresh_pushes_updates():
    state = {"printers": []}
    h = StatusHub(lambda: state["printers"], "127.0.0.1", 0, refresh_interval=0.1)
    h.start()
    try:
        with connect(_url(h)) as ws:
            assert json.loads(ws.recv(timeout=5))["printers"] == []
            state["printers"] = [{"id": "Late"}]
            for _ in range(20):
                if json.loads(ws.recv(timeout=5))["printers"]:
                    break
            else:
                pytest.fail("refresh never delivered the new printer list")
    finally:
        h.stop()


def test_stop_and_restart_cycle():
    h = StatusHub(lambda: [], "127.0.0.1", 0, refresh_interval=0.05)
    for _ in range(2):
        h.port = 0
        h.start()
        assert h.running
        with connect(_url(h)) as ws:
            ws.recv(timeout=5)
        h.stop()
        assert not h.running
