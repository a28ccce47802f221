from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from facture.models.province import Province


@dataclass(frozen=True)
class InvoiceItem:
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    total_price: Decimal  # (unit_price - discount) * quantity
    id: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> InvoiceItem:
        return cls(
            id=d.get("id"),
            description=d["description"],
            quantity=Decimal(str(d["quantity"])),
            unit_price=Decimal(str(d["unit_price"])),
            discount=Decimal(str(d.get("discount", "0"))),
            total_price=Decimal(str(d["total_price"])),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "discount": str(self.discount),
            "total_price": str(self.total_price),
        }


@dataclass(frozen=True)
class Invoice:
    """A persisted invoice.

    Totals and ``tax_rate`` are captured at creation and stored at full
    precision, so later tax table changes never alter historical invoices.
    """

    id: str
    invoice_number: str
    date: date
    company_id: str
    client_id: str
    province: Province
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    items: tuple[InvoiceItem, ...] = field(default_factory=tuple)
    due_date: date | None = None
    notes: str | None = None
    created_at: str | None = None  # ISO datetime with offset

    @classmethod
    def from_dict(cls, d: dict) -> Invoice:
        due = d.get("due_date")
        return cls(
            id=d["id"],
            invoice_number=d["invoice_number"],
            date=date.fromisoformat(d["date"]),
            due_date=date.fromisoformat(due) if due else None,
            company_id=d["company_id"],
            client_id=d["client_id"],
            province=Province(d["province"]),
            subtotal=Decimal(d["subtotal"]),
            tax_rate=Decimal(d["tax_rate"]),
            tax_amount=Decimal(d["tax_amount"]),
            total=Decimal(d["total"]),
            notes=d.get("notes") or None,
            items=tuple(InvoiceItem.from_dict(i) for i in d.get("items", [])),
            created_at=d.get("created_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "date": self.date.isoformat(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "company_id": self.company_id,
            "client_id": self.client_id,
            "province": str(self.province),
            "subtotal": str(self.subtotal),
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
            "total": str(self.total),
            "notes": self.notes,
            "items": [i.to_dict() for i in self.items],
            "created_at": self.created_at,
        }
