from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

_PERIOD_RE = re.compile(r"\d{4}(0[1-9]|1[0-2])")
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")

# Amounts and quantities stay well inside the 28-digit decimal context after
# multiplication, tax and rounding to cents.
MAX_MAGNITUDE = Decimal("1e9")


def parse_decimal(value: object, field: str) -> Decimal:
    """Convert user input (str, int, float, Decimal) to a finite Decimal.

    Floats go through ``str`` so 0.1 stays 0.1 rather than its binary expansion.
    Raises ValueError for empty, non-numeric, non-finite or out-of-range values.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field}: numeric value required")
    if isinstance(value, float):
        value = str(value)
    try:
        d = Decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{field}: invalid numeric value '{value}'") from None
    if not d.is_finite():
        raise ValueError(f"{field}: invalid numeric value '{value}'")
    if abs(d) >= MAX_MAGNITUDE or d.as_tuple().exponent < -10:
        raise ValueError(f"{field}: value out of range '{value}'")
    return d


def validate_quantity(value: object) -> Decimal:
    """Quantities may be fractional (hours) but never negative."""
    d = parse_decimal(value, "quantity")
    if d < 0:
        raise ValueError(f"quantity must not be negative: '{value}'")
    return d


def validate_date(value: str) -> date:
    """Parse an ISO date string (YYYY-MM-DD)."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date: '{value}'. Use YYYY-MM-DD.") from None


def validate_period(value: str) -> str:
    """Validate a counter period key: YYYYMM with a real month."""
    if not isinstance(value, str) or not _PERIOD_RE.fullmatch(value):
        raise ValueError(f"Invalid period: '{value}'. Use YYYYMM.")
    return value


def validate_email(value: str) -> str:
    if not _EMAIL_RE.fullmatch(value.strip()):
        raise ValueError(f"Invalid email address: '{value}'")
    return value.strip()


def clean_optional(value: object) -> str | None:
    """Strip a free-text field, mapping blanks to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
