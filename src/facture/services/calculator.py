"""Line item and invoice total arithmetic.

Everything stays in full-precision Decimal. Rounding to cents belongs to
presentation (see utils.formatters), never to these calculations.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from facture.models.invoice import InvoiceItem
from facture.services.exceptions import InvalidLineItem, MissingRequiredField
from facture.utils.validators import parse_decimal, validate_quantity

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def compute_item_total(unit_price: Decimal, discount: Decimal, quantity: Decimal) -> Decimal:
    """(unit_price - discount) * quantity. Negative results are returned as-is."""
    return (unit_price - discount) * quantity


def compute_invoice_totals(items: Iterable[InvoiceItem], tax_rate: Decimal) -> InvoiceTotals:
    subtotal = sum((item.total_price for item in items), Decimal(0))
    tax_amount = subtotal * tax_rate
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def _cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def validate_line_item(raw: Mapping, index: int | None = None) -> InvoiceItem:
    """Build a trusted InvoiceItem from caller input.

    Accepts ``unit_price``/``unitPrice`` and ``total_price``/``totalPrice``
    spellings. The total is always recomputed; a supplied total that does not
    match the recomputation at cent precision is rejected.
    """
    description = str(raw.get("description") or "").strip()
    if not description:
        raise InvalidLineItem("description is required", index)

    try:
        quantity = validate_quantity(raw.get("quantity"))
        unit_price = parse_decimal(_pick(raw, "unit_price", "unitPrice"), "unit_price")
        discount_raw = raw.get("discount")
        discount = Decimal(0) if discount_raw in (None, "") else parse_decimal(discount_raw, "discount")
    except ValueError as e:
        raise InvalidLineItem(str(e), index) from None

    total = compute_item_total(unit_price, discount, quantity)

    supplied = _pick(raw, "total_price", "totalPrice")
    if supplied not in (None, ""):
        try:
            supplied_total = parse_decimal(supplied, "total_price")
        except ValueError as e:
            raise InvalidLineItem(str(e), index) from None
        if _cents(supplied_total) != _cents(total):
            raise InvalidLineItem(
                f"total_price {supplied_total} does not match "
                f"({unit_price} - {discount}) x {quantity} = {total}",
                index,
            )

    return InvoiceItem(
        id=raw.get("id") or uuid.uuid4().hex,
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        discount=discount,
        total_price=total,
    )


def validate_line_items(raw_items: object) -> list[InvoiceItem]:
    """Validate every submitted item, keeping submission order."""
    if raw_items is None:
        raise MissingRequiredField("items")
    if isinstance(raw_items, (str, bytes, Mapping)) or not isinstance(raw_items, Iterable):
        raise InvalidLineItem("items must be a list of line items")
    items = list(raw_items)
    if not items:
        raise MissingRequiredField("items")
    validated = []
    for i, raw in enumerate(items):
        if isinstance(raw, InvoiceItem):
            raw = raw.to_dict()
        elif not isinstance(raw, Mapping):
            raise InvalidLineItem("expected a mapping with description, quantity and unit_price", i)
        validated.append(validate_line_item(raw, i))
    return validated


def _pick(raw: Mapping, *keys: str) -> object:
    for key in keys:
        if key in raw:
            return raw[key]
    return None
