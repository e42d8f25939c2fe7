"""
Comparison result of one reconciliation pass.

SyncComparison is produced by the comparator, optionally staged as JSON, and
consumed once by the apply phase.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .billing import CanonicalBillingRecord
from .sales import SalesRecord
from .values import to_decimal

# customer_sales columns whose change values are decimals
NUMERIC_COLUMNS = ("quantity", "unit_price", "total_price")


@dataclass(frozen=True)
class RecordUpdate:
    """A matched pair whose mirrored fields drifted.

    `changes` maps customer_sales column -> new value taken from the billing
    side (unrounded decimals, ISO date string, product name, customer id).
    A customer_id of None means the customer does not exist yet and will be
    created when the update is applied.
    """

    billing_record: CanonicalBillingRecord
    sales_record: SalesRecord
    changes: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "billing_record": self.billing_record.to_dict(),
            "sales_record": self.sales_record.to_row(),
            "changes": {
                column: str(value) if isinstance(value, Decimal) else value
                for column, value in self.changes.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecordUpdate":
        changes = {
            column: to_decimal(value) if column in NUMERIC_COLUMNS else value
            for column, value in data.get("changes", {}).items()
        }
        return cls(
            billing_record=CanonicalBillingRecord.from_dict(data["billing_record"]),
            sales_record=SalesRecord.from_row(data["sales_record"]),
            changes=changes,
        )


@dataclass(frozen=True)
class UnchangedPair:
    """A matched pair already in sync."""

    billing_record: CanonicalBillingRecord
    sales_record: SalesRecord

    def to_dict(self) -> dict[str, Any]:
        return {
            "billing_record": self.billing_record.to_dict(),
            "sales_record": self.sales_record.to_row(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnchangedPair":
        return cls(
            billing_record=CanonicalBillingRecord.from_dict(data["billing_record"]),
            sales_record=SalesRecord.from_row(data["sales_record"]),
        )


@dataclass
class SyncComparison:
    """Three-way diff between billing records and customer_sales rows."""

    to_create: list[CanonicalBillingRecord] = field(default_factory=list)
    to_update: list[RecordUpdate] = field(default_factory=list)
    to_delete: list[SalesRecord] = field(default_factory=list)
    unchanged: list[UnchangedPair] = field(default_factory=list)

    @property
    def has_pending(self) -> bool:
        """True if anything needs to be created, updated or deleted."""
        return bool(self.to_create or self.to_update or self.to_delete)

    @property
    def billing_count(self) -> int:
        return len(self.to_create) + len(self.to_update) + len(self.unchanged)

    @property
    def sales_count(self) -> int:
        return len(self.to_update) + len(self.to_delete) + len(self.unchanged)

    def billing_ids(self) -> list[str]:
        """Billing ids across the three billing-side buckets."""
        ids = [r.id for r in self.to_create if r.id]
        ids.extend(u.billing_record.id for u in self.to_update if u.billing_record.id)
        ids.extend(p.billing_record.id for p in self.unchanged if p.billing_record.id)
        return ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "to_create": [r.to_dict() for r in self.to_create],
            "to_update": [u.to_dict() for u in self.to_update],
            "to_delete": [s.to_row() for s in self.to_delete],
            "unchanged": [p.to_dict() for p in self.unchanged],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncComparison":
        return cls(
            to_create=[CanonicalBillingRecord.from_dict(r) for r in data.get("to_create", [])],
            to_update=[RecordUpdate.from_dict(u) for u in data.get("to_update", [])],
            to_delete=[SalesRecord.from_row(s) for s in data.get("to_delete", [])],
            unchanged=[UnchangedPair.from_dict(p) for p in data.get("unchanged", [])],
        )
