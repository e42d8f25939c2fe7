"""
Value coercion shared by the billing and sales schemas.

Both backends hand us loosely typed values (FileMaker returns strings or
numbers, PostgREST returns numbers or numeric strings), so every numeric and
date value passes through here before it reaches the comparator.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")

# FileMaker layouts return US dates; PostgREST returns ISO dates/timestamps.
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


def to_decimal(value: Any) -> Decimal:
    """Coerce a raw numeric value to Decimal; missing or garbage becomes 0."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_record_date(value: Any) -> date | None:
    """
    Parse a date from either backend, dropping any time component.

    Accepts date/datetime objects, YYYY-MM-DD, MM/DD/YYYY and either of
    those followed by a time part (ISO "T" or FileMaker timestamp space).
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for separator in ("T", " "):
        if separator in text:
            text = text.split(separator, 1)[0]
            break

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def iso_date(value: date | None) -> str | None:
    """Format a date as YYYY-MM-DD (None passes through)."""
    return value.isoformat() if value is not None else None
