from __future__ import annotations

from datetime import date, datetime

from facture import config as _config
from facture.models.province import Province
from facture.services.exceptions import ValidationError
from facture.taxes import parse_province
from facture.utils import store
from facture.utils.validators import validate_period

COUNTER_WIDTH = 4


def period_key(as_of: date) -> str:
    """YYYYMM for the month containing *as_of*."""
    return f"{as_of.year:04d}{as_of.month:02d}"


def today_in(province: Province) -> date:
    """Current calendar date in the province's time zone."""
    return datetime.now(_config.PROVINCE_TIMEZONES[str(province)]).date()


def format_invoice_number(province: Province | str, period: str, counter: int) -> str:
    """PROVINCE-YYYYMM-NNNN. Counters past 9999 widen rather than wrap."""
    return f"{province}-{period}-{counter:0{COUNTER_WIDTH}d}"


def next_invoice_number(province: Province | str, as_of: date | None = None) -> str:
    """Consume the next counter for (province, month of *as_of*) and return its invoice number."""
    prov = parse_province(province)
    period = period_key(as_of or today_in(prov))
    counter = store.increment_counter(str(prov), period)
    return format_invoice_number(prov, period, counter)


def peek_invoice_number(province: Province | str, as_of: date | None = None) -> str:
    """Return the number the next call would issue, without consuming it."""
    prov = parse_province(province)
    period = period_key(as_of or today_in(prov))
    return format_invoice_number(prov, period, store.get_counter(str(prov), period) + 1)


def _period(value: str) -> str:
    try:
        return validate_period(value)
    except ValueError as e:
        raise ValidationError(str(e)) from None


def current_counter(province: Province | str, period: str) -> int:
    prov = parse_province(province)
    return store.get_counter(str(prov), _period(period))


def set_counter(province: Province | str, period: str, value: int) -> None:
    """Advance a counter, e.g. when migrating from another numbering system."""
    prov = parse_province(province)
    store.set_counter(str(prov), _period(period), value)
