from __future__ import annotations

"""
Receipt and totals models.

These mirror the JSON the front-end already sends (camelCase keys). Totals
are computed upstream; nothing here does arithmetic.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Amounts arrive as numbers or numeric strings; formatting tolerates both.
Amount = Union[int, float, str]
Moment = Union[str, int, float]

INCLUSIVE = "INCLUSIVE"


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )


class Label(_Model):
    label: Optional[str] = None


class Location(_Model):
    bin_number: Optional[str] = None
    vat_form_number: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class CustomerAddress(_Model):
    address_line: Optional[str] = None
    area: Optional[Label] = None
    city: Optional[Label] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None

    def compose(self) -> str:
        parts = [
            self.address_line,
            self.area.label if self.area else None,
            self.city.label if self.city else None,
            self.zipcode,
            self.country,
        ]
        return ", ".join(str(p) for p in parts if p)


class Customer(_Model):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    addresses: List[CustomerAddress] = Field(default_factory=list)


class LineItem(_Model):
    item_name: Optional[str] = None
    variant_name: Optional[str] = None
    quantity: Amount = 0
    unit_price: Amount = 0

    @property
    def display_name(self) -> str:
        return " - ".join(p for p in (self.variant_name, self.item_name) if p)


class NoteAuthor(_Model):
    name: Optional[str] = None


class Note(_Model):
    text: Optional[str] = None
    visible_on_invoice: bool = False
    created_at: Optional[Moment] = None
    author: Optional[NoteAuthor] = None


class ReceiptModel(_Model):
    display_name: Optional[str] = None
    bin_number: Optional[str] = None
    vat_form_number: Optional[str] = None
    location: Optional[Location] = None
    custom_domain: Optional[str] = None
    invoice_number: Union[str, int, None] = None
    created_at: Optional[Moment] = None
    customer: Optional[Customer] = None
    items: List[LineItem] = Field(default_factory=list)
    notes: List[Note] = Field(default_factory=list)

    @property
    def bin(self) -> Optional[str]:
        return (self.location.bin_number if self.location else None) or self.bin_number

    @property
    def vat_form(self) -> Optional[str]:
        return (self.location.vat_form_number if self.location else None) or self.vat_form_number


class Charge(_Model):
    charge_label: Optional[str] = None
    calculated_value: Amount = 0
    application_method: Optional[str] = None

    @property
    def inclusive(self) -> bool:
        return (self.application_method or "").upper() == INCLUSIVE


class Payment(_Model):
    method: Optional[str] = None
    amount: Amount = 0
    created_at: Optional[Moment] = None
    user: Optional[str] = None


class TotalsModel(_Model):
    total_quantity: Amount = 0
    subtotal: Amount = 0
    charges: List[Charge] = Field(default_factory=list)
    grand_total: Amount = 0
    payments: List[Payment] = Field(default_factory=list)
    total_paid: Amount = 0
    balance_due: Amount = 0


__all__ = [
    "Charge",
    "Customer",
    "CustomerAddress",
    "LineItem",
    "Location",
    "Note",
    "Payment",
    "ReceiptModel",
    "TotalsModel",
]
