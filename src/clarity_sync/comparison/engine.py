"""
Billing ↔ customer_sales comparator.

Given the billing records and the customer_sales rows of the same window,
computes what must be created, updated and deleted so that exactly one
customer_sales row mirrors each billing record.

Matching rules:
- billing.id ↔ sales.financial_id, case-insensitive
- hours/rate/amount ↔ quantity/unit_price/total_price after rounding both
  sides to cents (half-up); the change carries the unrounded billing value
- dates compared as YYYY-MM-DD
- product_name recomputed from customer and project name, exact match
- customer_id recomputed through the injected resolver, exact match

Output order follows input order, so identical inputs give identical output.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any, Optional

from ..schemas.billing import CanonicalBillingRecord
from ..schemas.comparison import RecordUpdate, SyncComparison, UnchangedPair
from ..schemas.sales import SalesRecord, format_product_name
from ..schemas.values import iso_date, round_cents

logger = logging.getLogger(__name__)

# customer name -> local customer id (None if it does not exist yet)
CustomerIdResolver = Callable[[str], Optional[str]]

# (billing field, sales column)
_NUMERIC_FIELDS = (
    ("hours", "quantity"),
    ("rate", "unit_price"),
    ("amount", "total_price"),
)


def identify_changes(
    billing: CanonicalBillingRecord,
    sale: SalesRecord,
    resolve_customer_id: CustomerIdResolver,
) -> dict[str, Any]:
    """
    Column-level changes needed to make sale mirror billing.

    Returns:
        Mapping of customer_sales column -> new value (empty if in sync)
    """
    changes: dict[str, Any] = {}

    for billing_field, sales_column in _NUMERIC_FIELDS:
        billing_value = getattr(billing, billing_field)
        if round_cents(billing_value) != round_cents(getattr(sale, sales_column)):
            changes[sales_column] = billing_value

    # An undated billing record cannot assert a date
    if billing.date is not None and iso_date(billing.date) != iso_date(sale.date):
        changes["date"] = iso_date(billing.date)

    expected_product = format_product_name(billing.customer_name, billing.project_name)
    if expected_product != sale.product_name:
        changes["product_name"] = expected_product

    expected_customer = resolve_customer_id(billing.customer_name)
    if expected_customer != sale.customer_id:
        changes["customer_id"] = expected_customer

    return changes


def _index_sales(
    sales_records: Iterable[SalesRecord],
) -> tuple[dict[str, SalesRecord], list[SalesRecord]]:
    """Index by lowercased financial_id; second and later duplicates are returned apart."""
    index: dict[str, SalesRecord] = {}
    duplicates: list[SalesRecord] = []
    unlinked = 0

    for sale in sales_records:
        if not sale.financial_id:
            unlinked += 1
            continue
        key = sale.financial_id.lower()
        if key in index:
            logger.warning(
                "Duplicate customer_sales row %s for financial_id %s (keeping %s)",
                sale.id,
                sale.financial_id,
                index[key].id,
            )
            duplicates.append(sale)
            continue
        index[key] = sale

    if unlinked:
        logger.info("Ignoring %d customer_sales rows without a financial_id", unlinked)
    return index, duplicates


def compare_records(
    billing_records: Iterable[CanonicalBillingRecord],
    sales_records: Iterable[SalesRecord],
    resolve_customer_id: CustomerIdResolver,
) -> SyncComparison:
    """
    Compute the three-way diff between billing records and customer_sales rows.

    Both inputs must cover the same organization and date window. Billing
    records without an id are data-quality gaps: logged and left out of every
    bucket. Repeated billing ids are compared once.

    Args:
        billing_records: Canonical billing records of the window
        sales_records: customer_sales rows of the window
        resolve_customer_id: Maps a customer name to the expected local customer id

    Returns:
        SyncComparison with to_create, to_update, to_delete and unchanged
    """
    comparison = SyncComparison()
    remaining, duplicates = _index_sales(sales_records)
    seen: set[str] = set()

    for billing in billing_records:
        if not billing.id:
            logger.warning(
                "Billing record without id excluded from comparison "
                "(customer=%r, project=%r, date=%s)",
                billing.customer_name,
                billing.project_name,
                iso_date(billing.date),
            )
            continue

        key = billing.id.lower()
        if key in seen:
            logger.warning("Duplicate billing record id %s excluded from comparison", billing.id)
            continue
        seen.add(key)

        sale = remaining.pop(key, None)
        if sale is None:
            comparison.to_create.append(billing)
            continue

        changes = identify_changes(billing, sale, resolve_customer_id)
        if changes:
            logger.debug("Billing record %s drifted: %s", billing.id, sorted(changes))
            comparison.to_update.append(
                RecordUpdate(billing_record=billing, sales_record=sale, changes=changes)
            )
        else:
            comparison.unchanged.append(UnchangedPair(billing_record=billing, sales_record=sale))

    # Whatever was never matched is orphaned; surplus duplicates go with them
    comparison.to_delete.extend(remaining.values())
    comparison.to_delete.extend(duplicates)

    logger.info(
        "Comparison: %d to create, %d to update, %d to delete, %d unchanged",
        len(comparison.to_create),
        len(comparison.to_update),
        len(comparison.to_delete),
        len(comparison.unchanged),
    )
    return comparison
