"""
Command-line entry point: `print-agent` (or `python app.py`).

Startup order: logging, settings, single-instance takeover, port
arbitration, then the WebSocket hub and the threaded HTTP server. A
StartupError at any point is logged and reported through exit status 2.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
from typing import List, Optional

from werkzeug.serving import make_server

from print_agent import __version__, create_app
from print_agent.core.config import load_settings
from print_agent.core.errors import StartupError
from print_agent.core.logging import configure_logging
from print_agent.runtime.arbitration import PortArbiter
from print_agent.runtime.context import AgentContext
from print_agent.runtime.instance import InstanceLock, take_over_instance
from print_agent.runtime.reaper import reaper_for_platform

logger = logging.getLogger(__name__)

EXIT_STARTUP_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="print-agent", description="Local receipt print agent")
    parser.add_argument("--config", help="Path to a JSON config file (default: XDG config dir)")
    parser.add_argument("--dev", action="store_true", help="Send thermal jobs to the TCP emulator")
    parser.add_argument(
        "--no-takeover",
        action="store_true",
        help="Skip the single-instance lock; only arbitrate the ports",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _install_signal_handlers(context: AgentContext) -> None:
    def _on_signal(signum, _frame):
        logger.info("Received signal %d", signum)
        # server.shutdown() must not run on the serving thread
        context.request_shutdown()

    for name in ("SIGINT", "SIGTERM"):
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _on_signal)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings(args.config)
    if args.dev:
        settings = dataclasses.replace(settings, production=False)
    configure_logging(settings.log_file or None)
    logger.info(
        "Starting print agent %s (%s mode)", __version__, "production" if settings.production else "development",
    )

    reaper = reaper_for_platform()
    lock: Optional[InstanceLock] = None
    try:
        if not args.no_takeover:
            lock = InstanceLock(settings.lock_path)
            take_over_instance(lock, settings, reaper)

        arbiter = PortArbiter.from_settings(settings, reaper=reaper)
        arbiter.acquire()

        context = AgentContext(settings)
        app = create_app(context)
        hub = context.create_hub()
        try:
            hub.start()
        except (OSError, RuntimeError) as e:
            raise StartupError(f"Could not start WebSocket server on port {settings.ws_port}: {e}") from e
        try:
            server = make_server(settings.host, settings.http_port, app, threaded=True)
        except OSError as e:
            hub.stop()
            raise StartupError(f"Could not bind {settings.host}:{settings.http_port}: {e}") from e
    except StartupError as e:
        logger.error("Startup failed: %s", e)
        if lock is not None:
            lock.release()
        return EXIT_STARTUP_FAILED

    context.on_shutdown(server.shutdown)
    _install_signal_handlers(context)
    arbiter.mark_running()
    logger.info("Print agent API at http://%s:%d", settings.host, settings.http_port)

    try:
        server.serve_forever()
    finally:
        context.shutdown()
        server.server_close()
        if lock is not None:
            lock.release()
        logger.info("Print agent stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
