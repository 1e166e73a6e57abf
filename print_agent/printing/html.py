"""
Generic HTML printing.

Page rendering belongs to the host's print path; the agent only hands the
document over and waits for the spooler to accept or refuse it. A refusal is
reported as False, not raised: the OS print UI is where users see those.
"""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from print_agent.printing.jobs import Completion

logger = logging.getLogger(__name__)


class HtmlPrintBackend(ABC):
    @abstractmethod
    def print_html(
        self,
        printer_name: str,
        html: str,
        width_mm: Optional[float],
        height_mm: Optional[float],
        timeout: float,
    ) -> bool:
        """Return True when the job was queued, False when the host refused it."""


class LpHtmlBackend(HtmlPrintBackend):
    """
    Submit HTML to CUPS with `lp`; page size comes from widthMM/heightMM and
    margins are removed.
    """

    def __init__(self, command: str = "lp") -> None:
        self.command = command

    def build_command(self, printer_name: str, width_mm: Optional[float], height_mm: Optional[float]) -> List[str]:
        cmd = [self.command, "-d", printer_name, "-o", "document-format=text/html"]
        if width_mm and height_mm:
            cmd += ["-o", f"media=Custom.{round(width_mm)}x{round(height_mm)}mm"]
        cmd += ["-o", "page-left=0", "-o", "page-right=0", "-o", "page-top=0", "-o", "page-bottom=0", "-"]
        return cmd

    def print_html(
        self,
        printer_name: str,
        html: str,
        width_mm: Optional[float],
        height_mm: Optional[float],
        timeout: float,
    ) -> bool:
        cmd = self.build_command(printer_name, width_mm, height_mm)
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        completion = Completion("HTML print")

        def _watch() -> None:
            try:
                _, err = proc.communicate(html.encode("utf-8"))
            except Exception as e:
                completion.reject(e)
                return
            if proc.returncode != 0:
                logger.info("Print not successful (exit=%s): %s", proc.returncode, err.decode(errors="replace").strip())
            completion.resolve(proc.returncode == 0)

        threading.Thread(target=_watch, daemon=True, name="print-agent-html").start()
        try:
            return bool(completion.wait(timeout))
        except Exception:
            proc.kill()
            raise


class ShellHtmlBackend(HtmlPrintBackend):
    """
    Windows: write the document to a temp file and hand it to the registered
    HTML handler with the "printto" verb.
    """

    def print_html(
        self,
        printer_name: str,
        html: str,
        width_mm: Optional[float],
        height_mm: Optional[float],
        timeout: float,
    ) -> bool:
        import tempfile

        import win32api  # type: ignore[import-not-found]

        with tempfile.NamedTemporaryFile("w", suffix=".html", delete=False, encoding="utf-8") as f:
            f.write(html)
            path = f.name
        completion = Completion("HTML print")

        def _submit() -> None:
            try:
                result = win32api.ShellExecute(0, "printto", path, f'"{printer_name}"', ".", 0)
            except Exception as e:
                logger.info("Print not successful: %s", e)
                completion.resolve(False)
                return
            # ShellExecute returns a value > 32 on success
            completion.resolve(result > 32)

        threading.Thread(target=_submit, daemon=True, name="print-agent-html").start()
        return bool(completion.wait(timeout))


def default_html_backend() -> HtmlPrintBackend:
    if sys.platform == "win32":
        return ShellHtmlBackend()
    return LpHtmlBackend()


__all__ = ["HtmlPrintBackend", "LpHtmlBackend", "ShellHtmlBackend", "default_html_backend"]
