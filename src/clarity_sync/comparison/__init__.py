"""Comparator for billing records and customer_sales rows."""

from .engine import CustomerIdResolver, compare_records, identify_changes

__all__ = ["CustomerIdResolver", "compare_records", "identify_changes"]
