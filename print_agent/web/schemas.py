from __future__ import annotations

"""
Pydantic schemas for the print agent's HTTP API.

The request bodies keep the keys the point-of-sale front-end already sends
(`printer.name`, `widthMM`, `heightMM`, camelCase receipt fields). Receipt
and totals models live in print_agent.printing.models and are re-exported
here so the web layer has one import site.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from print_agent.printing.models import ReceiptModel, TotalsModel


class PrinterRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="OS printer name or id", max_length=256)

    @field_validator("name")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Printer information is missing or invalid")
        return v


class HtmlPrintRequest(BaseModel):
    """POST /print"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    printer: PrinterRef
    html: str = Field(..., min_length=1)
    width_mm: Optional[float] = Field(default=None, alias="widthMM", gt=0)
    height_mm: Optional[float] = Field(default=None, alias="heightMM", gt=0)


class ThermalPrintRequest(BaseModel):
    """POST /print-thermal"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    printer: PrinterRef
    data: ReceiptModel
    totals: TotalsModel
    width_mm: float = Field(..., alias="widthMM", gt=0)


def first_error_message(exc: Exception) -> str:
    """Concise message from a pydantic ValidationError (first error only)."""
    try:
        first = exc.errors()[0]  # type: ignore[attr-defined]
        msg = first.get("msg") or str(exc)
    except Exception:
        return str(exc)
    # pydantic prefixes custom ValueError messages
    return msg.removeprefix("Value error, ")


__all__ = [
    "HtmlPrintRequest",
    "PrinterRef",
    "ReceiptModel",
    "ThermalPrintRequest",
    "TotalsModel",
    "first_error_message",
]
