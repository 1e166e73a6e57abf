"""
Receipt rendering pipeline.

render_receipt() walks a ReceiptModel and its precomputed TotalsModel once,
top to bottom, and emits printer primitives on a CommandSink. It formats;
it never computes totals, taxes or charges.
"""

from __future__ import annotations

import logging
from typing import List

from print_agent.printing.layout import (
    Align,
    Column,
    format_date,
    format_money,
    format_number,
    format_time,
    parse_amount,
    resolve_character_width,
    two_column_line,
    wrap_text,
)
from print_agent.printing.models import ReceiptModel, TotalsModel
from print_agent.printing.sink import CommandSink, EscposSink, TextScale

logger = logging.getLogger(__name__)

DEFAULT_FOOTER = "Powered by ProSystem"
DEFAULT_ORGANIZATION = "Organization"
DEFAULT_PAYMENT_USER = "Admin"
DEFAULT_NOTE_AUTHOR = "System"

# Serial, item, quantity and price columns
SERIAL_WIDTH = 0.08
ITEM_WIDTH = 0.54
QTY_WIDTH = 0.15
PRICE_WIDTH = 0.23


def _price_width(price: str, line_width: int) -> float:
    # long amounts take whole characters from the item column
    return min(PRICE_WIDTH + ITEM_WIDTH, max(PRICE_WIDTH, (len(price) + 0.5) / line_width))


def _item_columns(serial: str, name: str, qty: str, price: str, price_width: float = PRICE_WIDTH) -> List[Column]:
    return [
        Column(serial, Align.LEFT, SERIAL_WIDTH),
        Column(name, Align.LEFT, ITEM_WIDTH - (price_width - PRICE_WIDTH)),
        Column(qty, Align.CENTER, QTY_WIDTH),
        Column(price, Align.RIGHT, price_width),
    ]


def _moment_line(value) -> str:
    return f"{format_date(value)}, {format_time(value)}"


def _render_header(sink: CommandSink, receipt: ReceiptModel) -> None:
    sink.set_alignment(Align.CENTER)
    sink.set_text_scale(TextScale.QUAD)
    sink.set_emphasis(True)
    sink.print_line(receipt.display_name or DEFAULT_ORGANIZATION)
    sink.set_emphasis(False)
    sink.set_text_scale(TextScale.NORMAL)

    if receipt.bin:
        sink.print_line(f"BIN: {receipt.bin}")
        if receipt.vat_form:
            sink.print_line(f"Mushak - {receipt.vat_form}")

    location = receipt.location
    if location and location.address:
        for line in wrap_text(location.address, sink.width):
            sink.print_line(line)

    if location:
        contact = ", ".join(p for p in (location.phone, location.email) if p)
        if contact:
            sink.print_line(contact)

    if receipt.custom_domain:
        sink.print_line(receipt.custom_domain)


def _render_invoice_block(sink: CommandSink, receipt: ReceiptModel) -> None:
    sink.set_alignment(Align.LEFT)
    sink.draw_separator()
    invoice_number = receipt.invoice_number if receipt.invoice_number is not None else ""
    sink.print_line(two_column_line(f"INVOICE {invoice_number}", format_date(receipt.created_at), sink.width))
    sink.print_line(two_column_line("", format_time(receipt.created_at), sink.width))


def _render_customer(sink: CommandSink, receipt: ReceiptModel) -> None:
    customer = receipt.customer
    if customer is None:
        return
    sink.draw_separator()
    sink.set_emphasis(True)
    sink.print_line("CUSTOMER")
    sink.set_emphasis(False)

    if customer.name:
        sink.print_line(customer.name)
    if customer.phone:
        sink.print_line(f"Phone: {customer.phone}")
    if customer.email:
        sink.print_line(f"Email: {customer.email}")

    if customer.addresses:
        address = customer.addresses[0].compose()
        if address:
            sink.print_line(f"Address: {address}")


def _render_items(sink: CommandSink, receipt: ReceiptModel) -> None:
    sink.draw_separator()
    sink.set_emphasis(True)
    sink.print_table_row(_item_columns("Sl", "Item", "Qty", "Price"))
    sink.set_emphasis(False)
    sink.draw_separator()

    for index, item in enumerate(receipt.items, start=1):
        price = format_money(item.unit_price)
        price_width = _price_width(price, sink.width)
        item_width = max(1, int(sink.width * (ITEM_WIDTH - (price_width - PRICE_WIDTH))))
        lines = wrap_text(item.display_name, item_width)
        sink.print_table_row(
            _item_columns(f"{index}.", lines[0], format_number(item.quantity), price, price_width),
        )
        for extra in lines[1:]:
            sink.print_table_row(_item_columns("", extra, "", "", price_width))


def _render_summary(sink: CommandSink, totals: TotalsModel) -> None:
    sink.draw_separator()
    sink.print_line(
        two_column_line(f"Subtotal ({format_number(totals.total_quantity)})", format_money(totals.subtotal), sink.width),
    )
    for charge in totals.charges:
        label = f"{charge.charge_label or ''}{' (inc)' if charge.inclusive else ''}"
        magnitude = format_money(charge.calculated_value).lstrip("-")
        sink.print_line(two_column_line(label, magnitude, sink.width))

    sink.set_emphasis(True)
    sink.print_line(two_column_line("TOTAL", format_money(totals.grand_total), sink.width))
    sink.set_emphasis(False)


def _render_payments(sink: CommandSink, totals: TotalsModel) -> None:
    if not totals.payments:
        return
    sink.draw_separator()
    for payment in totals.payments:
        sink.print_line(two_column_line(payment.method or "", format_money(payment.amount), sink.width))
        if payment.created_at:
            sink.print_line(f"  {_moment_line(payment.created_at)}, {payment.user or DEFAULT_PAYMENT_USER}")
    sink.draw_separator()

    if parse_amount(totals.total_paid) > 0:
        sink.set_emphasis(True)
        sink.print_line(two_column_line("PAID", format_money(totals.total_paid), sink.width))
        sink.set_emphasis(False)

    if parse_amount(totals.balance_due) > 0:
        sink.set_emphasis(True)
        sink.print_line(two_column_line("DUE", format_money(totals.balance_due), sink.width))
        sink.set_emphasis(False)


def _render_notes(sink: CommandSink, receipt: ReceiptModel) -> None:
    visible = [note for note in receipt.notes if note.visible_on_invoice]
    if not visible:
        return
    sink.feed_line()
    sink.draw_separator()
    sink.set_emphasis(True)
    sink.print_line("Notes:")
    sink.set_emphasis(False)
    for note in visible:
        sink.print_line(f"- {note.text or ''}")
        if note.created_at:
            author = (note.author.name if note.author else None) or DEFAULT_NOTE_AUTHOR
            sink.print_line(f"  {_moment_line(note.created_at)}, {author}")


def _render_footer(sink: CommandSink, footer: str) -> None:
    sink.feed_line()
    sink.set_alignment(Align.CENTER)
    sink.set_text_scale(TextScale.SMALL)
    sink.print_line(footer)
    sink.set_text_scale(TextScale.NORMAL)
    sink.cut_paper()


def render_receipt(
    sink: CommandSink,
    receipt: ReceiptModel,
    totals: TotalsModel,
    *,
    footer: str = DEFAULT_FOOTER,
) -> None:
    """
    Emit the full receipt onto sink, sized to sink.width characters.
    """
    _render_header(sink, receipt)
    _render_invoice_block(sink, receipt)
    _render_customer(sink, receipt)
    _render_items(sink, receipt)
    _render_summary(sink, totals)
    _render_payments(sink, totals)
    _render_notes(sink, receipt)
    _render_footer(sink, footer)


def build_thermal_buffer(
    receipt: ReceiptModel,
    totals: TotalsModel,
    width_mm: float,
    *,
    footer: str = DEFAULT_FOOTER,
) -> bytes:
    """
    Render a receipt to ESC/POS bytes for a roll of width_mm millimetres.
    """
    char_width = resolve_character_width(width_mm)
    logger.info("Paper: %smm -> %d characters per line", width_mm, char_width)
    sink = EscposSink(char_width)
    render_receipt(sink, receipt, totals, footer=footer)
    buffer = sink.output
    logger.debug("Built ESC/POS buffer: %d bytes, %d items", len(buffer), len(receipt.items))
    return buffer


__all__ = ["DEFAULT_FOOTER", "build_thermal_buffer", "render_receipt"]
