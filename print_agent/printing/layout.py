"""
Fixed-width text layout for thermal receipts.

Everything here is pure and deterministic: date/time and money formatting,
padding, two-column lines, greedy word wrapping, table rows and the mapping
from paper width (mm) to characters per line.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "BDT"

# Font A (12x24) at 203 DPI with 3 mm margins on either side
STANDARD_WIDTHS = {
    58: 32,
    76: 42,
    80: 48,
    82: 48,
    110: 64,
}
WIDTH_TOLERANCE_MM = 2
MARGINS_MM = 6
CHARS_PER_CM = 5.9
MIN_CHARS = 32
MAX_CHARS = 64

_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_LEADING_INT = re.compile(r"^\s*([+-]?)(\d+)")


class Align(str, Enum):
    LEFT = "LEFT"
    CENTER = "CENTER"
    RIGHT = "RIGHT"


@dataclass(frozen=True)
class Column:
    text: str
    align: Align = Align.LEFT
    width: float = 1.0  # fraction of the line


# ---------------------------------------------------------------------------
# Dates


def _parse_moment(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            moment = value
        elif isinstance(value, date):
            moment = datetime(value.year, value.month, value.day)
        elif isinstance(value, (int, float)):
            # epoch milliseconds, as browsers send them
            moment = datetime.fromtimestamp(value / 1000)
        else:
            text = str(value).strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            moment = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError):
        logger.debug("Unparseable date value: %r", value)
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment


def format_date(value: Any) -> str:
    """DD/MM/YY, or "" for empty or unparseable input."""
    moment = _parse_moment(value)
    if moment is None:
        return ""
    return f"{moment.day:02d}/{moment.month:02d}/{moment.year % 100:02d}"


def format_time(value: Any) -> str:
    """12-hour H:MM AM/PM, or "" for empty or unparseable input."""
    moment = _parse_moment(value)
    if moment is None:
        return ""
    period = "PM" if moment.hour >= 12 else "AM"
    return f"{moment.hour % 12 or 12}:{moment.minute:02d} {period}"


# ---------------------------------------------------------------------------
# Money


def _number_text(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def parse_amount(amount: Any) -> float:
    if isinstance(amount, (int, float)) and not isinstance(amount, bool):
        value = float(amount)
    else:
        match = _LEADING_FLOAT.match(str(amount if amount is not None else ""))
        value = float(match.group(1)) if match else 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def format_currency(amount: Any, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Round to cents (half-up on the magnitude) and drop a trailing ".00".

    Non-BDT currencies are rounded to whole units first. Non-numeric input
    formats as "0".
    """
    value = parse_amount(amount)
    if currency != DEFAULT_CURRENCY:
        value = float(math.floor(value + 0.5))
    negative = value < 0
    cents = math.floor(abs(value) * 100 + 0.5)
    text = _number_text(cents / 100)
    if text.endswith(".00"):
        text = text[:-3]
    if negative and cents:
        text = "-" + text
    return text


def group_thousands(amount: str) -> str:
    """
    "1234567.50" -> "1,234,567.50"; "1234567.00" -> "1,234,567".
    Returns "" when the integer part is not a number.
    """
    parts = str(amount).split(".")
    match = _LEADING_INT.match(parts[0])
    if not match:
        return ""
    sign, digits = match.groups()
    fraction = parts[1] if len(parts) > 1 else ""

    text = f"{int(digits):,}"
    if fraction:
        text = f"{text}.{fraction}"
    if text.endswith(".00"):
        text = text[:-3]
    if sign == "-" and text.strip("0.,"):
        text = "-" + text
    return text


def format_money(amount: Any, currency: str = DEFAULT_CURRENCY) -> str:
    return group_thousands(format_currency(amount, currency))


def format_number(value: Any) -> str:
    """Quantities: 2.0 prints as "2", strings pass through."""
    if isinstance(value, float) and math.isfinite(value):
        return _number_text(value)
    return str(value)


# ---------------------------------------------------------------------------
# Fixed-width helpers


def pad_right(text: Any, length: int) -> str:
    s = str(text)
    if len(s) >= length:
        return s[:length]
    return s + " " * (length - len(s))


def pad_left(text: Any, length: int) -> str:
    s = str(text)
    if len(s) >= length:
        return s[:length]
    return " " * (length - len(s)) + s


def pad_center(text: Any, length: int) -> str:
    s = str(text)
    if len(s) >= length:
        return s[:length]
    left = (length - len(s)) // 2
    return " " * left + s + " " * (length - len(s) - left)


def two_column_line(left: Any, right: Any, total_width: int) -> str:
    """
    Left text flush left, right text flush right, exactly total_width wide.
    When both do not fit, the left side is truncated; the right never is.
    """
    left_s = str(left)
    right_s = str(right)
    space_needed = total_width - len(left_s) - len(right_s)
    if space_needed < 1:
        keep = max(0, total_width - len(right_s) - 1)
        return left_s[:keep] + " " + right_s
    return left_s + " " * space_needed + right_s


def wrap_text(text: str, max_width: int) -> List[str]:
    """
    Greedy word wrap. Breaks at the last space inside the window, or mid-word
    when the window holds no usable space.
    """
    if max_width < 1:
        raise ValueError(f"max_width must be positive, got {max_width}")
    if len(text) <= max_width:
        return [text]

    lines: List[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_width:
            lines.append(remaining)
            break
        break_at = remaining[:max_width].rfind(" ")
        if break_at <= 0:
            break_at = max_width
        lines.append(remaining[:break_at].strip())
        remaining = remaining[break_at:].strip()
    return lines


def _cell(column: Column, size: int) -> str:
    if column.align is Align.RIGHT:
        return pad_left(column.text, size)
    if column.align is Align.CENTER:
        return pad_center(column.text, size)
    return pad_right(column.text, size)


def table_row(columns: Sequence[Column], total_width: int) -> str:
    cells = [_cell(column, int(total_width * column.width)) for column in columns]
    return "".join(cells).rstrip()


def table_rows(columns: Sequence[Column], total_width: int) -> List[str]:
    """
    Lay out a row whose cells may not fit their columns.

    An overflowing cell wraps onto continuation rows where every other
    column is blank, so no characters are dropped.
    """
    if not columns:
        return [""]
    wrapped = []
    for column in columns:
        size = int(total_width * column.width)
        wrapped.append(wrap_text(column.text, size) if size >= 1 else [column.text])

    rows = []
    for i in range(max(len(lines) for lines in wrapped)):
        cells = [
            Column(lines[i] if i < len(lines) else "", column.align, column.width)
            for column, lines in zip(columns, wrapped)
        ]
        rows.append(table_row(cells, total_width))
    return rows


def resolve_character_width(paper_width_mm: float) -> int:
    """
    Characters per line for a paper width.

    Standard rolls (within 2 mm) use their known counts; anything else is
    estimated from the printable width and clamped to what thermal heads do.
    """
    closest = min(STANDARD_WIDTHS, key=lambda w: abs(w - paper_width_mm))
    if abs(closest - paper_width_mm) <= WIDTH_TOLERANCE_MM:
        return STANDARD_WIDTHS[closest]

    printable_cm = (paper_width_mm - MARGINS_MM) / 10
    calculated = math.floor(printable_cm * CHARS_PER_CM)
    return max(MIN_CHARS, min(MAX_CHARS, calculated))


__all__ = [
    "Align",
    "Column",
    "DEFAULT_CURRENCY",
    "STANDARD_WIDTHS",
    "format_currency",
    "format_date",
    "format_money",
    "parse_amount",
    "format_number",
    "format_time",
    "group_thousands",
    "pad_center",
    "pad_left",
    "pad_right",
    "resolve_character_width",
    "table_row",
    "table_rows",
    "two_column_line",
    "wrap_text",
]
