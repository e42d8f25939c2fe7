"""
Canonical billing record (SSOT).

Every billable time record fetched from FileMaker is mapped into this shape
by the normalizer; nothing downstream touches the raw FileMaker field names.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from .values import iso_date, parse_record_date, to_decimal


@dataclass(frozen=True)
class CanonicalBillingRecord:
    """
    One unit of billable work.

    `id` is the FileMaker __ID and is the natural key matched against
    customer_sales.financial_id. `amount` is hours * rate at normalization
    time and is authoritative afterwards.
    """

    id: Optional[str]
    customer_id: Optional[str]
    customer_name: str
    project_id: Optional[str]
    project_name: str
    hours: Decimal
    rate: Decimal
    amount: Decimal
    date: Optional[date]
    billed: bool

    # FileMaker internal record id (used for patch/delete on the source side)
    record_id: Optional[str] = None
    description: str = ""
    task_name: Optional[str] = None
    work_performed: str = ""
    fixed_price: Decimal = Decimal("0")
    month: int = 0
    year: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-safe dict (decimals as strings)."""
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "hours": str(self.hours),
            "rate": str(self.rate),
            "amount": str(self.amount),
            "date": iso_date(self.date),
            "billed": self.billed,
            "record_id": self.record_id,
            "description": self.description,
            "task_name": self.task_name,
            "work_performed": self.work_performed,
            "fixed_price": str(self.fixed_price),
            "month": self.month,
            "year": self.year,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CanonicalBillingRecord":
        """Rebuild from to_dict() output. Staged amounts are kept as stored."""
        return cls(
            id=data.get("id"),
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name") or "Unknown Customer",
            project_id=data.get("project_id"),
            project_name=data.get("project_name") or "Unknown Project",
            hours=to_decimal(data.get("hours")),
            rate=to_decimal(data.get("rate")),
            amount=to_decimal(data.get("amount")),
            date=parse_record_date(data.get("date")),
            billed=bool(data.get("billed", False)),
            record_id=data.get("record_id"),
            description=data.get("description") or "",
            task_name=data.get("task_name"),
            work_performed=data.get("work_performed") or "",
            fixed_price=to_decimal(data.get("fixed_price")),
            month=int(data.get("month") or 0),
            year=int(data.get("year") or 0),
        )
