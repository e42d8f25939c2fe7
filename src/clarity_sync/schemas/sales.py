"""
customer_sales row representation and the product short-code rule.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from .values import iso_date, parse_record_date, to_decimal

SALES_TABLE = "customer_sales"

# Columns read back for comparison; customers(...) embeds the joined name.
SALES_SELECT = (
    "id, date, customer_id, product_id, product_name, quantity, unit_price, "
    "total_price, inv_id, organization_id, created_at, updated_at, financial_id, "
    "customers(business_name)"
)

_NON_SHORT_CODE = re.compile(r"[^A-Z0-9]")


def format_product_name(customer_name: Optional[str], project_name: Optional[str]) -> str:
    """
    Build the product short code "<CUSTOMER CAPITALS AND DIGITS>:<first project word>".

    "Acme Corp 2" / "Website Redesign" -> "AC2:Website". Existing rows were
    written with this exact rule, so it must not change: the project name is
    split on single spaces and the customer name is only stripped, never
    upper-cased.
    """
    customer_code = _NON_SHORT_CODE.sub("", customer_name or "")
    project_word = project_name.split(" ")[0] if project_name else ""
    return f"{customer_code}:{project_word}"


@dataclass(frozen=True)
class SalesRecord:
    """A customer_sales row mirroring one billing record."""

    id: str
    financial_id: Optional[str]
    customer_id: Optional[str]
    product_name: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    date: Optional[date]
    organization_id: Optional[str]

    product_id: Optional[str] = None
    inv_id: Optional[str] = None
    customer_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SalesRecord":
        """Create from a PostgREST row (or a staged to_row() dict)."""
        customer_name = row.get("customer_name")
        joined = row.get("customers")
        if isinstance(joined, dict):
            customer_name = joined.get("business_name", customer_name)

        return cls(
            id=str(row["id"]),
            financial_id=row.get("financial_id"),
            customer_id=_optional_str(row.get("customer_id")),
            product_name=row.get("product_name"),
            quantity=to_decimal(row.get("quantity")),
            unit_price=to_decimal(row.get("unit_price")),
            total_price=to_decimal(row.get("total_price")),
            date=parse_record_date(row.get("date")),
            organization_id=_optional_str(row.get("organization_id")),
            product_id=_optional_str(row.get("product_id")),
            inv_id=_optional_str(row.get("inv_id")),
            customer_name=customer_name,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to JSON-safe dict using the table's column names."""
        return {
            "id": self.id,
            "financial_id": self.financial_id,
            "customer_id": self.customer_id,
            "product_name": self.product_name,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
            "date": iso_date(self.date),
            "organization_id": self.organization_id,
            "product_id": self.product_id,
            "inv_id": self.inv_id,
            "customer_name": self.customer_name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
