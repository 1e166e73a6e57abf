"""
Printer command sinks.

The receipt pipeline talks to a CommandSink: a small set of printer
primitives (alignment, emphasis, text size, lines, table rows, separators,
feeds and the cut). EscposSink records them as ESC/POS bytes through
python-escpos's Dummy printer so the buffer can be shipped anywhere.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence

from escpos.printer import Dummy

from print_agent.printing.layout import Align, Column, table_rows

logger = logging.getLogger(__name__)


class TextScale(str, Enum):
    NORMAL = "normal"
    QUAD = "quad"  # double width and double height
    SMALL = "small"  # font B


class CommandSink(ABC):
    """Abstract printer: everything the receipt pipeline is allowed to do."""

    def __init__(self, width: int) -> None:
        self.width = width

    @abstractmethod
    def set_alignment(self, align: Align) -> None: ...

    @abstractmethod
    def set_emphasis(self, on: bool) -> None: ...

    @abstractmethod
    def set_text_scale(self, scale: TextScale) -> None: ...

    @abstractmethod
    def print_line(self, text: str = "") -> None: ...

    @abstractmethod
    def print_table_row(self, columns: Sequence[Column]) -> None: ...

    @abstractmethod
    def draw_separator(self) -> None: ...

    @abstractmethod
    def feed_line(self) -> None: ...

    @abstractmethod
    def cut_paper(self) -> None: ...


class EscposSink(CommandSink):
    """
    Build an ESC/POS buffer without touching a device.

    Table rows are laid out as fixed-width text so the output does not depend
    on printer-side column support.
    """

    def __init__(self, width: int, line_character: str = "-", profile: Optional[str] = None) -> None:
        super().__init__(width)
        self.line_character = line_character
        self.printer = Dummy(profile=profile) if profile else Dummy()

    def set_alignment(self, align: Align) -> None:
        self.printer.set(align=align.value.lower())

    def set_emphasis(self, on: bool) -> None:
        self.printer.set(bold=on)

    def set_text_scale(self, scale: TextScale) -> None:
        if scale is TextScale.QUAD:
            self.printer.set(double_width=True, double_height=True)
        elif scale is TextScale.SMALL:
            self.printer.set(font="b")
        else:
            self.printer.set(font="a", normal_textsize=True)

    def print_line(self, text: str = "") -> None:
        self.printer.textln(text)

    def print_table_row(self, columns: Sequence[Column]) -> None:
        for row in table_rows(columns, self.width):
            self.printer.textln(row)

    def draw_separator(self) -> None:
        self.printer.textln(self.line_character * self.width)

    def feed_line(self) -> None:
        self.printer.ln()

    def cut_paper(self) -> None:
        self.printer.cut()

    @property
    def output(self) -> bytes:
        return self.printer.output


__all__ = ["CommandSink", "EscposSink", "TextScale"]
