"""
Financial synchronization service.

Runs one reconciliation cycle for an organization and date window:

    fetch billing -> normalize -> fetch customer_sales -> compare -> stage
    -> (unless dry run) create, update, delete

Fetch and comparison failures abort the run with SyncResult(success=False).
Failures of single creates, updates or deletes are recorded in
SyncResult.changes.errors and the run moves on to the next item.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Protocol

from ..comparison import compare_records
from ..normalizer import is_valid_response, normalize_billing_response
from ..repository import sales_row_from_billing
from ..schemas.comparison import SyncComparison
from ..schemas.values import iso_date
from .customer_resolver import CustomerResolutionError, CustomerResolver

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from ..repository import CustomerRepository, SalesRepository
    from ..schemas.billing import CanonicalBillingRecord
    from ..schemas.comparison import RecordUpdate
    from ..schemas.sales import SalesRecord
    from ..schemas.window import SyncWindow
    from ..staging import SyncStagingStore

logger = logging.getLogger(__name__)


class BillingSource(Protocol):
    """Anything that returns a raw billing response for a date range (None on failure)."""

    def fetch_records_for_date_range(
        self, start_date: date, end_date: date
    ) -> Optional[dict[str, Any]]: ...


class SyncAbortedError(Exception):
    """A fetch or comparison step failed; nothing was applied."""


class SyncType(str, Enum):
    FULL_REVIEW = "full_review"
    PENDING_ONLY = "pending_only"


@dataclass
class SyncSummary:
    """Bucket sizes of the comparison a run worked from."""

    billing_records: int = 0
    sales_records: int = 0
    to_create: int = 0
    to_update: int = 0
    to_delete: int = 0
    unchanged: int = 0

    @classmethod
    def from_comparison(cls, comparison: SyncComparison) -> SyncSummary:
        return cls(
            billing_records=comparison.billing_count,
            sales_records=comparison.sales_count,
            to_create=len(comparison.to_create),
            to_update=len(comparison.to_update),
            to_delete=len(comparison.to_delete),
            unchanged=len(comparison.unchanged),
        )


@dataclass
class SyncError:
    """One failed create, update or delete."""

    operation: str  # create, update, delete
    message: str
    billing_record_id: Optional[str] = None
    sales_record_id: Optional[str] = None


@dataclass
class SyncChanges:
    """What a run did (or, in a dry run, would do)."""

    created: list[dict[str, Any]] = field(default_factory=list)
    updated: list[dict[str, Any]] = field(default_factory=list)
    deleted: list[dict[str, Any]] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)


@dataclass
class SyncResult:
    """Outcome of one synchronize() call."""

    success: bool
    dry_run: bool
    sync_type: SyncType = SyncType.FULL_REVIEW
    summary: SyncSummary = field(default_factory=SyncSummary)
    changes: SyncChanges = field(default_factory=SyncChanges)
    processed_record_ids: list[str] = field(default_factory=list)
    duration_ms: int = 0
    error: Optional[str] = None
    comparison: Optional[SyncComparison] = None

    @property
    def has_errors(self) -> bool:
        """True if the run aborted or any single item failed."""
        return not self.success or bool(self.changes.errors)


@dataclass
class SyncStatus:
    """Dry-run view of a window: is it in sync, and what would change."""

    success: bool
    in_sync: bool = False
    summary: SyncSummary = field(default_factory=SyncSummary)
    changes: SyncChanges = field(default_factory=SyncChanges)
    error: Optional[str] = None


def _plan_created(billing: CanonicalBillingRecord) -> dict[str, Any]:
    return {
        "billing_record_id": billing.id,
        "customer_name": billing.customer_name,
        "project_name": billing.project_name,
        "amount": str(billing.amount),
        "date": iso_date(billing.date),
    }


def _plan_updated(update: RecordUpdate) -> dict[str, Any]:
    return {
        "sales_record_id": update.sales_record.id,
        "billing_record_id": update.billing_record.id,
        "changes": update.to_dict()["changes"],
    }


def _plan_deleted(sale: SalesRecord) -> dict[str, Any]:
    return {"sales_record_id": sale.id, "financial_id": sale.financial_id}


class FinancialSyncService:
    """
    Keeps customer_sales mirroring the billing records of the source system.

    One instance can serve many windows; per-run state (customer cache,
    result) lives only inside synchronize().
    """

    def __init__(
        self,
        billing_source: BillingSource,
        sales: SalesRepository,
        customers: CustomerRepository,
        staging: Optional[SyncStagingStore] = None,
    ) -> None:
        """
        Initialize the sync service.

        Args:
            billing_source: Source of raw billing responses (FileMaker client)
            sales: customer_sales repository
            customers: customers / customer_organization repository
            staging: Staging store for reviewed comparisons (None disables staging)
        """
        self.billing_source = billing_source
        self.sales = sales
        self.customers = customers
        self.staging = staging

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def review(self, window: SyncWindow) -> SyncComparison:
        """
        Fetch both sides of a window and compare them. Never writes.

        Raises:
            SyncAbortedError: If either fetch or the comparison fails
        """
        raw = self.billing_source.fetch_records_for_date_range(
            window.start_date, window.end_date
        )
        if raw is None or not is_valid_response(raw):
            raise SyncAbortedError("Failed to fetch billing records from FileMaker")
        billing_records = normalize_billing_response(raw)

        sales_result = self.sales.fetch_for_window(window)
        if not sales_result.success:
            raise SyncAbortedError(f"Failed to fetch customer_sales: {sales_result.error}")
        sales_records = sales_result.data or []

        logger.info(
            "Comparing %d billing records with %d customer_sales rows for %s",
            len(billing_records),
            len(sales_records),
            window,
        )

        lookup = CustomerResolver(self.customers, window.organization_id, create_missing=False)
        try:
            return compare_records(billing_records, sales_records, lookup)
        except CustomerResolutionError as e:
            raise SyncAbortedError(str(e)) from e
        except Exception as e:
            logger.exception("Comparison failed for %s", window)
            raise SyncAbortedError(f"Comparison failed: {e}") from e

    # -------------------------------------------------------------------------
    # Synchronize
    # -------------------------------------------------------------------------

    def synchronize(
        self,
        window: SyncWindow,
        dry_run: bool = False,
        delete_orphaned: bool = False,
        use_pending_only: bool = False,
    ) -> SyncResult:
        """
        Run one reconciliation cycle for window.

        Args:
            window: Organization and inclusive date range
            dry_run: Report what would change without writing anything
            delete_orphaned: Delete customer_sales rows with no billing record
            use_pending_only: Apply the staged comparison instead of re-fetching

        Returns:
            SyncResult; success is False only if the run aborted before applying
        """
        start_time = time.time()
        sync_type = SyncType.PENDING_ONLY if use_pending_only else SyncType.FULL_REVIEW
        result = SyncResult(success=True, dry_run=dry_run, sync_type=sync_type)

        logger.info(
            "Starting %s sync for %s (dry_run=%s, delete_orphaned=%s)",
            sync_type.value,
            window,
            dry_run,
            delete_orphaned,
        )

        if use_pending_only:
            staged = self.staging.get(window) if self.staging else None
            if staged is None:
                logger.info("No staged changes for %s, nothing to apply", window)
                result.duration_ms = int((time.time() - start_time) * 1000)
                return result
            comparison = staged.comparison
        else:
            try:
                comparison = self.review(window)
            except SyncAbortedError as e:
                logger.error("Sync aborted for %s: %s", window, e)
                result.success = False
                result.error = str(e)
                result.duration_ms = int((time.time() - start_time) * 1000)
                return result
            if self.staging:
                self.staging.store(window, comparison)

        result.comparison = comparison
        result.summary = SyncSummary.from_comparison(comparison)

        if dry_run:
            self._plan(comparison, result, delete_orphaned)
        else:
            self._apply(window, comparison, result, delete_orphaned)
            if self.staging and not result.changes.errors:
                self.staging.clear(window)

        result.duration_ms = int((time.time() - start_time) * 1000)

        logger.info(
            "Sync completed for %s: %d created, %d updated, %d deleted, %d errors in %dms",
            window,
            len(result.changes.created),
            len(result.changes.updated),
            len(result.changes.deleted),
            len(result.changes.errors),
            result.duration_ms,
        )
        return result

    def _plan(
        self, comparison: SyncComparison, result: SyncResult, delete_orphaned: bool
    ) -> None:
        """Fill result.changes with what an apply would do."""
        result.changes.created = [_plan_created(r) for r in comparison.to_create]
        result.changes.updated = [_plan_updated(u) for u in comparison.to_update]
        if delete_orphaned:
            result.changes.deleted = [_plan_deleted(s) for s in comparison.to_delete]
        result.processed_record_ids = comparison.billing_ids()

    def _apply(
        self,
        window: SyncWindow,
        comparison: SyncComparison,
        result: SyncResult,
        delete_orphaned: bool,
    ) -> None:
        """Creates, then updates, then deletes. Each item fails on its own."""
        resolver = CustomerResolver(self.customers, window.organization_id, create_missing=True)
        changes = result.changes

        for billing in comparison.to_create:
            try:
                customer_id = resolver.resolve(billing.customer_name)
                row = sales_row_from_billing(billing, customer_id, window.organization_id)
                created = self.sales.create(row)
            except Exception as e:
                logger.exception("Create failed for billing record %s", billing.id)
                changes.errors.append(SyncError("create", str(e), billing_record_id=billing.id))
                continue

            if not created.success:
                logger.warning("Create failed for billing record %s: %s", billing.id, created.error)
                changes.errors.append(
                    SyncError("create", created.error or "unknown error", billing_record_id=billing.id)
                )
                continue

            changes.created.append(created.data.to_row() if created.data else row)
            result.processed_record_ids.append(billing.id)

        for update in comparison.to_update:
            billing, sale = update.billing_record, update.sales_record
            try:
                patch = {k: v for k, v in update.changes.items() if k != "customer_id"}
                customer_id = resolver.resolve(billing.customer_name)
                if customer_id != sale.customer_id:
                    patch["customer_id"] = customer_id
                if not patch:
                    # Drift was only a customer that has since been created
                    result.processed_record_ids.append(billing.id)
                    continue
                updated = self.sales.update(sale.id, patch)
            except Exception as e:
                logger.exception("Update failed for customer_sales %s", sale.id)
                changes.errors.append(
                    SyncError(
                        "update", str(e), billing_record_id=billing.id, sales_record_id=sale.id
                    )
                )
                continue

            if not updated.success:
                logger.warning("Update failed for customer_sales %s: %s", sale.id, updated.error)
                changes.errors.append(
                    SyncError(
                        "update",
                        updated.error or "unknown error",
                        billing_record_id=billing.id,
                        sales_record_id=sale.id,
                    )
                )
                continue

            changes.updated.append(
                updated.data.to_row() if updated.data else {"id": sale.id, **patch}
            )
            result.processed_record_ids.append(billing.id)

        if delete_orphaned:
            for sale in comparison.to_delete:
                try:
                    deleted = self.sales.delete(sale.id)
                except Exception as e:
                    logger.exception("Delete failed for customer_sales %s", sale.id)
                    changes.errors.append(SyncError("delete", str(e), sales_record_id=sale.id))
                    continue

                if not deleted.success:
                    logger.warning("Delete failed for customer_sales %s: %s", sale.id, deleted.error)
                    changes.errors.append(
                        SyncError("delete", deleted.error or "unknown error", sales_record_id=sale.id)
                    )
                    continue
                changes.deleted.append(sale.to_row())
        elif comparison.to_delete:
            logger.info(
                "Leaving %d orphaned customer_sales rows in place (delete_orphaned not set)",
                len(comparison.to_delete),
            )

        for pair in comparison.unchanged:
            logger.debug(
                "Billing record %s already in sync with customer_sales %s",
                pair.billing_record.id,
                pair.sales_record.id,
            )
            result.processed_record_ids.append(pair.billing_record.id)

    # -------------------------------------------------------------------------
    # Status and batches
    # -------------------------------------------------------------------------

    def get_sync_status(self, window: SyncWindow) -> SyncStatus:
        """Dry-run the window and report whether it is in sync."""
        result = self.synchronize(window, dry_run=True)
        if not result.success:
            return SyncStatus(success=False, error=result.error)

        summary = result.summary
        return SyncStatus(
            success=True,
            in_sync=summary.to_create == 0 and summary.to_update == 0,
            summary=summary,
            changes=result.changes,
        )

    def pending_summary(self, window: SyncWindow) -> dict[str, Any]:
        """Counts of the staged comparison for window (all zero without staging)."""
        if self.staging is None:
            return {
                "has_pending": False,
                "to_create": 0,
                "to_update": 0,
                "to_delete": 0,
                "last_review": None,
            }
        return self.staging.pending_summary(window)

    def synchronize_periods(
        self,
        windows: Iterable[SyncWindow],
        dry_run: bool = False,
        delete_orphaned: bool = False,
    ) -> list[tuple[SyncWindow, SyncResult]]:
        """
        Synchronize several windows one after the other.

        A failed window is reported in its result and does not stop the
        remaining ones.
        """
        results = []
        for window in windows:
            try:
                result = self.synchronize(
                    window, dry_run=dry_run, delete_orphaned=delete_orphaned
                )
            except Exception as e:
                logger.exception("Sync failed for %s", window)
                result = SyncResult(success=False, dry_run=dry_run, error=str(e))
            results.append((window, result))

        failed = sum(1 for _, r in results if not r.success)
        logger.info("Synchronized %d periods (%d failed)", len(results), failed)
        return results
