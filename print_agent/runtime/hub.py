"""
WebSocket printer-status hub.

Runs one asyncio loop on its own thread. Each client gets the current printer
list on connect; the same message is broadcast on every periodic refresh and
whenever broadcast_printers() is called from another thread. Keepalive pings
go out every ping_interval seconds and clients that miss the pong are dropped
by the websockets library.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from websockets.asyncio.server import ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosed

logger = logging.getLogger(__name__)

PrinterLister = Callable[[], List[Dict[str, Any]]]


def status_message(printers: List[Dict[str, Any]]) -> str:
    return json.dumps({"type": "printer-status", "printers": printers})


class StatusHub:
    def __init__(
        self,
        list_printers: PrinterLister,
        host: str = "127.0.0.1",
        port: int = 21322,
        *,
        ping_interval: float = 30.0,
        refresh_interval: float = 10.0,
    ) -> None:
        self.list_printers = list_printers
        self.host = host
        self.port = port
        self.ping_interval = ping_interval
        self.refresh_interval = refresh_interval
        self.clients: Set[ServerConnection] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self, timeout: float = 5.0) -> None:
        if self.running:
            return
        self._ready.clear()
        self._error = None
        self._thread = threading.Thread(target=self._run, daemon=True, name="print-agent-ws")
        self._thread.start()
        if not self._ready.wait(timeout):
            raise RuntimeError("WebSocket server did not start in time")
        if self._error is not None:
            raise self._error

    def stop(self, timeout: float = 5.0) -> None:
        loop, stop = self._loop, self._stop
        if loop is None or stop is None or not self.running:
            return
        loop.call_soon_threadsafe(stop.set)
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("WebSocket server stopped")

    def broadcast_printers(self, printers: List[Dict[str, Any]]) -> None:
        """Thread-safe: schedule a printer-status broadcast on the hub's loop."""
        loop = self._loop
        if loop is None or not self.running:
            return
        loop.call_soon_threadsafe(self._broadcast, printers)

    # -- loop side ---------------------------------------------------------

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._serve())
        except Exception as e:
            logger.exception("WebSocket server failed: %s", e)
            self._error = e
            self._ready.set()
        finally:
            loop.close()
            self._loop = None

    async def _serve(self) -> None:
        self._stop = asyncio.Event()
        async with serve(
            self._handle,
            self.host,
            self.port,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_interval,
        ) as server:
            sock = next(iter(server.sockets))
            self.port = sock.getsockname()[1]
            logger.info("WebSocket server at ws://%s:%d", self.host, self.port)
            self._ready.set()

            refresh: Optional[asyncio.Task] = None
            if self.refresh_interval > 0:
                refresh = asyncio.create_task(self._refresh_loop())
            try:
                await self._stop.wait()
            finally:
                if refresh is not None:
                    refresh.cancel()
                    await asyncio.gather(refresh, return_exceptions=True)

    async def _snapshot(self) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(self.list_printers)
        except Exception as e:
            logger.warning("Printer discovery failed: %s", e)
            return []

    async def _handle(self, connection: ServerConnection) -> None:
        self.clients.add(connection)
        logger.info("WebSocket client connected (%d open)", len(self.clients))
        try:
            await connection.send(status_message(await self._snapshot()))
            await connection.wait_closed()
        except ConnectionClosed:
            pass
        finally:
            self.clients.discard(connection)
            logger.info("WebSocket client disconnected (%d open)", len(self.clients))

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            self._broadcast(await self._snapshot())

    def _broadcast(self, printers: List[Dict[str, Any]]) -> None:
        if self.clients:
            broadcast(self.clients, status_message(printers))


__all__ = ["StatusHub", "status_message"]
