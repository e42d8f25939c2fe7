"""
FileMaker billing record normalization.

The dapiRecords layout returns dozens of loosely typed, optional fields per
record. This module is the only place that knows those field names; it turns
one Data API response into CanonicalBillingRecord objects.
"""

import logging
from typing import Any, Optional

from ..schemas.billing import CanonicalBillingRecord
from ..schemas.values import parse_record_date, to_decimal

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown Customer"
UNKNOWN_PROJECT = "Unknown Project"

# FileMaker field names (dapiRecords layout)
FIELD_ID = "__ID"
FIELD_CUSTOMER_ID = "_custID"
FIELD_CUSTOMER_NAME = "Customers::Name"
FIELD_CUSTOMER_RATE = "Customers::chargeRate"
FIELD_PROJECT_ID = "_projectID"
FIELD_PROJECT_NAMES = ("customers_Projects::projectName", "customers_Projects::Name")
FIELD_HOURS = "Billable_Time_Rounded"
FIELD_RATE = "Hourly_Rate"
FIELD_DATE = "DateStart"
FIELD_BILLED = "f_billed"
FIELD_WORK_PERFORMED = ("Work Performed", "dapiRecords::Work Performed")
FIELD_TASK_NAME = ("Tasks::task", "dapiTasks::task")
FIELD_FIXED_PRICE = "customers_Projects::f_fixedPrice"


def _present(value: Any) -> bool:
    """FileMaker uses "" for empty fields; a numeric 0 rate also counts as unset."""
    if value is None or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0:
        return False
    return True


def _first(field_data: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = field_data.get(name)
        if _present(value):
            return value
    return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def is_valid_response(raw: Any) -> bool:
    """True if raw has the response.data list the normalizer expects."""
    if not isinstance(raw, dict):
        return False
    response = raw.get("response")
    if not isinstance(response, dict):
        return False
    return isinstance(response.get("data"), list)


def normalize_record(record: dict[str, Any]) -> CanonicalBillingRecord:
    """Map one raw {recordId, fieldData} record to a CanonicalBillingRecord."""
    field_data = record.get("fieldData") or {}

    hours = to_decimal(field_data.get(FIELD_HOURS))
    rate = to_decimal(_first(field_data, FIELD_RATE, FIELD_CUSTOMER_RATE))
    billed_flag = field_data.get(FIELD_BILLED)
    work_performed = _first(field_data, *FIELD_WORK_PERFORMED) or ""

    return CanonicalBillingRecord(
        id=_optional_str(field_data.get(FIELD_ID)),
        customer_id=_optional_str(field_data.get(FIELD_CUSTOMER_ID)),
        customer_name=field_data.get(FIELD_CUSTOMER_NAME) or UNKNOWN_CUSTOMER,
        project_id=_optional_str(field_data.get(FIELD_PROJECT_ID)),
        project_name=_first(field_data, *FIELD_PROJECT_NAMES) or UNKNOWN_PROJECT,
        hours=hours,
        rate=rate,
        amount=hours * rate,
        date=parse_record_date(field_data.get(FIELD_DATE)),
        billed=billed_flag == "1" or billed_flag == 1,
        record_id=_optional_str(record.get("recordId")),
        description=field_data.get("Work Performed") or "",
        task_name=_first(field_data, *FIELD_TASK_NAME),
        work_performed=str(work_performed),
        fixed_price=to_decimal(field_data.get(FIELD_FIXED_PRICE)),
        month=_to_int(field_data.get("month")),
        year=_to_int(field_data.get("year")),
    )


def is_wellformed_record(record: Any) -> bool:
    """True for a dict whose fieldData, if set, is a dict."""
    if not isinstance(record, dict):
        return False
    return isinstance(record.get("fieldData") or {}, dict)


def count_missing_customer_ids(raw: Any) -> int:
    """Number of raw records with an empty _custID (data-quality diagnostic)."""
    if not is_valid_response(raw):
        return 0
    return sum(
        1
        for record in raw["response"]["data"]
        if is_wellformed_record(record)
        and not (record.get("fieldData") or {}).get(FIELD_CUSTOMER_ID)
    )


def normalize_billing_response(raw: Any) -> list[CanonicalBillingRecord]:
    """
    Normalize a FileMaker Data API response into canonical billing records.

    A response without response.data is treated as "nothing to sync": it is
    logged and yields an empty list rather than raising.

    Args:
        raw: Parsed JSON response ({"response": {"data": [...]}})

    Returns:
        CanonicalBillingRecord list in source order
    """
    if not is_valid_response(raw):
        logger.error("Billing response is missing response.data; nothing to normalize")
        return []

    data = raw["response"]["data"]
    records = [normalize_record(record) for record in data if is_wellformed_record(record)]
    malformed = len(data) - len(records)
    if malformed:
        logger.warning("Skipped malformed billing records: %d out of %d", malformed, len(data))

    missing_customers = count_missing_customer_ids(raw)
    if missing_customers:
        logger.warning(
            "Records with empty customer IDs: %d out of %d", missing_customers, len(data)
        )
    undated = sum(1 for r in records if r.date is None)
    if undated:
        logger.warning("Records without a parseable %s: %d", FIELD_DATE, undated)

    logger.debug("Normalized %d billing records", len(records))
    return records
