from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

_MONTHS_EN = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_MONTHS_FR = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)


def format_money(value: Decimal | str) -> str:
    """Format an amount as $X,XXX.XX (rounded half-up to cents); negatives as -$X.XX."""
    d = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if d < 0 else ""
    return f"{sign}${abs(d):,.2f}"


def format_quantity(value: Decimal | str) -> str:
    """Drop a meaningless fractional part: 3 -> "3", 1.50 -> "1.5"."""
    d = Decimal(value)
    if d == d.to_integral_value():
        return str(d.quantize(Decimal(1)))
    return format(d.normalize(), "f")


def format_rate(rate: Decimal | str) -> str:
    """Format a tax fraction as a percentage with 2 to 3 decimals: 0.13 -> 13.00%, 0.14975 -> 14.975%."""
    pct = Decimal(rate) * 100
    text = f"{pct:.3f}"
    if text.endswith("0"):
        text = text[:-1]
    return f"{text}%"


def format_date(value: date, lang: str = "en") -> str:
    """Long-form date: "June 5, 2025" (en) or "5 juin 2025" (fr)."""
    if lang == "fr":
        day = "1er" if value.day == 1 else str(value.day)
        return f"{day} {_MONTHS_FR[value.month - 1]} {value.year}"
    return f"{_MONTHS_EN[value.month - 1]} {value.day}, {value.year}"
