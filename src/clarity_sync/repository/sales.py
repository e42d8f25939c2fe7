"""
customer_sales repository adapter.

Reads the rows of one organization and date window and creates, updates and
deletes single rows by their store-assigned id. Failures come back as
RepositoryResult(success=False); nothing is raised past this layer.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ..schemas.billing import CanonicalBillingRecord
from ..schemas.sales import SALES_SELECT, SALES_TABLE, SalesRecord, format_product_name
from ..schemas.values import iso_date
from ..supabase_client import QueryFilter, QueryOrder
from .base import RepositoryResult

if TYPE_CHECKING:
    from ..schemas.window import SyncWindow
    from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def sales_row_from_billing(
    billing: CanonicalBillingRecord, customer_id: str | None, organization_id: str
) -> dict[str, Any]:
    """Build the customer_sales insert payload mirroring a billing record."""
    return {
        "financial_id": billing.id,
        "customer_id": customer_id,
        "organization_id": organization_id,
        "product_name": format_product_name(billing.customer_name, billing.project_name),
        "quantity": billing.hours,
        "unit_price": billing.rate,
        "total_price": billing.amount,
        "date": iso_date(billing.date),
    }


class SalesRepository:
    """Adapter over the customer_sales table."""

    def __init__(self, client: SupabaseClient, table: str = SALES_TABLE) -> None:
        self.client = client
        self.table = table

    def fetch_for_window(self, window: SyncWindow) -> RepositoryResult[list[SalesRecord]]:
        """Return every row of the organization dated within the window (inclusive)."""
        # lt end+1 keeps the whole last day even if the column carries a time part
        filters = [
            QueryFilter("eq", "organization_id", window.organization_id),
            QueryFilter("gte", "date", window.start),
            QueryFilter("lt", "date", (window.end_date + timedelta(days=1)).isoformat()),
        ]
        try:
            result = self.client.query(
                self.table,
                select=SALES_SELECT,
                filters=filters,
                order=QueryOrder("date", ascending=True),
            )
        except Exception as e:
            logger.exception("customer_sales query failed for %s", window)
            return RepositoryResult.fail(f"Failed to fetch customer_sales: {e}")

        if not result.success:
            return RepositoryResult.fail(result.error or "Failed to fetch customer_sales")

        records = []
        for row in result.data:
            try:
                record = SalesRecord.from_row(row)
            except (KeyError, TypeError) as e:
                logger.warning("Skipping malformed customer_sales row %r: %s", row, e)
                continue
            if record.date is not None and not window.contains(record.date):
                continue
            records.append(record)

        logger.debug("Fetched %d customer_sales rows for %s", len(records), window)
        return RepositoryResult.ok(records)

    def _single_row(self, result: Any, action: str) -> RepositoryResult[SalesRecord]:
        if not result.success:
            return RepositoryResult.fail(result.error or f"Failed to {action} customer_sales record")
        if not result.data:
            return RepositoryResult.fail(f"No customer_sales record returned by {action}")
        try:
            return RepositoryResult.ok(SalesRecord.from_row(result.data[0]))
        except (KeyError, TypeError) as e:
            return RepositoryResult.fail(f"Malformed customer_sales row after {action}: {e}")

    def create(self, row: dict[str, Any]) -> RepositoryResult[SalesRecord]:
        """Insert one row and return it as stored."""
        try:
            result = self.client.insert(self.table, row)
        except Exception as e:
            logger.exception("customer_sales insert failed")
            return RepositoryResult.fail(str(e))
        return self._single_row(result, "create")

    def update(self, sales_id: str, patch: dict[str, Any]) -> RepositoryResult[SalesRecord]:
        """Apply patch to the row with this id and return the updated row."""
        try:
            result = self.client.update(self.table, patch, {"id": sales_id})
        except Exception as e:
            logger.exception("customer_sales update failed for %s", sales_id)
            return RepositoryResult.fail(str(e))
        return self._single_row(result, "update")

    def delete(self, sales_id: str) -> RepositoryResult[SalesRecord | None]:
        """Delete the row with this id; data is the removed row when returned."""
        try:
            result = self.client.remove(self.table, {"id": sales_id})
        except Exception as e:
            logger.exception("customer_sales delete failed for %s", sales_id)
            return RepositoryResult.fail(str(e))
        if not result.success:
            return RepositoryResult.fail(result.error or "Failed to delete customer_sales record")
        removed = SalesRecord.from_row(result.data[0]) if result.data else None
        return RepositoryResult.ok(removed)
