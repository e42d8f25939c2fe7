"""
Record normalizer: raw FileMaker billing records → CanonicalBillingRecord.
"""

from .records import (
    UNKNOWN_CUSTOMER,
    UNKNOWN_PROJECT,
    count_missing_customer_ids,
    is_valid_response,
    is_wellformed_record,
    normalize_billing_response,
    normalize_record,
)

__all__ = [
    "UNKNOWN_CUSTOMER",
    "UNKNOWN_PROJECT",
    "count_missing_customer_ids",
    "is_valid_response",
    "is_wellformed_record",
    "normalize_billing_response",
    "normalize_record",
]
