"""
Schemas for billing records, customer_sales rows and comparison results.
"""

from .billing import CanonicalBillingRecord
from .comparison import RecordUpdate, SyncComparison, UnchangedPair
from .sales import SALES_SELECT, SALES_TABLE, SalesRecord, format_product_name
from .values import iso_date, parse_record_date, round_cents, to_decimal
from .window import SyncWindow

__all__ = [
    "CanonicalBillingRecord",
    "RecordUpdate",
    "SALES_SELECT",
    "SALES_TABLE",
    "SalesRecord",
    "SyncComparison",
    "SyncWindow",
    "UnchangedPair",
    "format_product_name",
    "iso_date",
    "parse_record_date",
    "round_cents",
    "to_decimal",
]
