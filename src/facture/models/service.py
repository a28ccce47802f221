from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from facture.models.invoice import InvoiceItem
from facture.services.calculator import compute_item_total


class ServiceCategory(StrEnum):
    CORE = "CORE"
    ADDITIONAL = "ADDITIONAL"


@dataclass(frozen=True)
class Service:
    """A catalogue entry. Invoices copy its name and price; they never reference it."""

    id: str
    name_en: str
    default_price: Decimal
    category: ServiceCategory = ServiceCategory.CORE
    name_fr: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Service:
        return cls(
            id=d["id"],
            name_en=d["name_en"],
            default_price=Decimal(str(d["default_price"])),
            category=ServiceCategory(str(d.get("category", "CORE")).upper()),
            name_fr=d.get("name_fr") or None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name_en": self.name_en,
            "name_fr": self.name_fr,
            "default_price": str(self.default_price),
            "category": str(self.category),
        }

    def description(self, lang: str = "en") -> str:
        if lang == "fr" and self.name_fr:
            return self.name_fr
        if lang == "both" and self.name_fr:
            return f"{self.name_en} / {self.name_fr}"
        return self.name_en

    def to_line_item(
        self,
        quantity: Decimal | int = 1,
        discount: Decimal | int = 0,
        lang: str = "en",
    ) -> InvoiceItem:
        """Copy this service into a new line item priced at ``default_price``."""
        quantity = Decimal(quantity)
        discount = Decimal(discount)
        return InvoiceItem(
            description=self.description(lang),
            quantity=quantity,
            unit_price=self.default_price,
            discount=discount,
            total_price=compute_item_total(self.default_price, discount, quantity),
        )
