"""Provincial sales tax table.

Rates are combined federal + provincial rates (HST, or GST+QST in Quebec).
Adding a province means adding a ``Province`` member and a row here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from facture.models.province import Province
from facture.services.exceptions import UnknownProvince, UnsupportedProvince


@dataclass(frozen=True)
class TaxInfo:
    rate: Decimal
    name: str
    name_fr: str

    def label(self, bilingual: bool = False) -> str:
        if bilingual and self.name_fr != self.name:
            return f"{self.name} / {self.name_fr}"
        return self.name


TAX_TABLE: dict[Province, TaxInfo] = {
    Province.ON: TaxInfo(rate=Decimal("0.13"), name="HST", name_fr="TVH"),
    Province.QC: TaxInfo(rate=Decimal("0.14975"), name="GST+QST", name_fr="TPS+TVQ"),
    Province.NB: TaxInfo(rate=Decimal("0.15"), name="HST", name_fr="TVH"),
    Province.NS: TaxInfo(rate=Decimal("0.15"), name="HST", name_fr="TVH"),
}


def parse_province(value: object) -> Province:
    """Normalize a province code ("qc", " ON ", Province.NB) to a Province.

    Raises UnsupportedProvince for anything else.
    """
    if isinstance(value, Province):
        return value
    if not isinstance(value, str):
        raise UnsupportedProvince(value)
    try:
        return Province(value.strip().upper())
    except ValueError:
        raise UnsupportedProvince(value) from None


def rate_for(province: object) -> TaxInfo:
    """Return the tax info for *province*, raising UnknownProvince if there is none."""
    try:
        key = parse_province(province)
    except UnsupportedProvince:
        raise UnknownProvince(province) from None
    info = TAX_TABLE.get(key)
    if info is None:
        raise UnknownProvince(province)
    return info
