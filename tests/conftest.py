"""Test fixtures and utilities."""

from collections import defaultdict
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import pytest

from clarity_sync.schemas import CanonicalBillingRecord, SalesRecord, SyncWindow
from clarity_sync.supabase_client import QueryFilter, QueryOrder, QueryResult

ORG_ID = "org-1"


def billing_fields(
    record_id: Optional[str],
    customer: str = "Acme",
    project: str = "Website",
    hours: Any = "5",
    rate: Any = "100",
    day: str = "03/01/2024",
    **extra: Any,
) -> dict[str, Any]:
    """fieldData of one dapiRecords record."""
    fields = {
        "__ID": record_id or "",
        "_custID": "C-1",
        "Customers::Name": customer,
        "Customers::chargeRate": "",
        "_projectID": "P-1",
        "customers_Projects::projectName": project,
        "Billable_Time_Rounded": hours,
        "Hourly_Rate": rate,
        "DateStart": day,
        "f_billed": "0",
    }
    fields.update(extra)
    return fields


def filemaker_response(*field_data: dict[str, Any]) -> dict[str, Any]:
    """Wrap fieldData dicts the way the Data API returns them."""
    return {
        "response": {
            "data": [
                {"recordId": str(i + 1), "modId": "0", "fieldData": fd}
                for i, fd in enumerate(field_data)
            ],
            "dataInfo": {"foundCount": len(field_data), "returnedCount": len(field_data)},
        },
        "messages": [{"code": "0", "message": "OK"}],
    }


def make_billing(
    record_id: Optional[str] = "X1",
    customer_name: str = "Acme",
    project_name: str = "Website",
    hours: str = "5",
    rate: str = "100",
    amount: Optional[str] = None,
    day: Optional[date] = date(2024, 3, 1),
) -> CanonicalBillingRecord:
    hours_d, rate_d = Decimal(hours), Decimal(rate)
    return CanonicalBillingRecord(
        id=record_id,
        customer_id="C-1",
        customer_name=customer_name,
        project_id="P-1",
        project_name=project_name,
        hours=hours_d,
        rate=rate_d,
        amount=Decimal(amount) if amount is not None else hours_d * rate_d,
        date=day,
        billed=False,
    )


def make_sale(
    sales_id: str = "s-1",
    financial_id: Optional[str] = "X1",
    customer_id: Optional[str] = "cust-1",
    product_name: Optional[str] = "Acme:Website",
    quantity: str = "5",
    unit_price: str = "100",
    total_price: str = "500",
    day: Optional[date] = date(2024, 3, 1),
) -> SalesRecord:
    return SalesRecord(
        id=sales_id,
        financial_id=financial_id,
        customer_id=customer_id,
        product_name=product_name,
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        total_price=Decimal(total_price),
        date=day,
        organization_id=ORG_ID,
    )


class FakeSupabaseClient:
    """
    In-memory stand-in for SupabaseClient.

    Supports the filters the repositories use (eq, gte, gt, lt, lte), records
    every call, and lets a test fail individual writes through fail_hook.
    """

    def __init__(self, tables: Optional[dict[str, list[dict[str, Any]]]] = None):
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(row) for row in rows]
        self.calls: list[tuple[str, str]] = []
        self.fail_hook: Optional[Callable[[str, str, dict[str, Any]], Optional[str]]] = None
        self._next_id = 1

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in ("insert", "update", "remove")]

    def _failure(self, method: str, table: str, payload: dict[str, Any]) -> Optional[str]:
        return self.fail_hook(method, table, payload) if self.fail_hook else None

    @staticmethod
    def _matches(row: dict[str, Any], filters: list[QueryFilter]) -> bool:
        for f in filters:
            value = row.get(f.column)
            if f.op == "eq" and str(value) != str(f.value):
                return False
            if f.op in ("gt", "gte", "lt", "lte"):
                if value is None:
                    return False
                left, right = str(value), str(f.value)
                if f.op == "gt" and not left > right:
                    return False
                if f.op == "gte" and not left >= right:
                    return False
                if f.op == "lt" and not left < right:
                    return False
                if f.op == "lte" and not left <= right:
                    return False
        return True

    @staticmethod
    def _matches_all(row: dict[str, Any], match: dict[str, Any]) -> bool:
        return all(str(row.get(k)) == str(v) for k, v in match.items())

    def query(
        self,
        table: str,
        select: str = "*",
        filters: Optional[list[QueryFilter]] = None,
        order: Optional[QueryOrder] = None,
    ) -> QueryResult:
        self.calls.append(("query", table))
        rows = [dict(r) for r in self.tables[table] if self._matches(r, filters or [])]
        if order:
            rows.sort(key=lambda r: str(r.get(order.column) or ""), reverse=not order.ascending)
        return QueryResult.ok(rows)

    def insert(self, table: str, row: dict[str, Any]) -> QueryResult:
        self.calls.append(("insert", table))
        error = self._failure("insert", table, row)
        if error:
            return QueryResult.fail(error)
        stored = {"id": f"{table}-{self._next_id}", **row}
        self._next_id += 1
        self.tables[table].append(stored)
        return QueryResult.ok([dict(stored)])

    def update(self, table: str, patch: dict[str, Any], match: dict[str, Any]) -> QueryResult:
        self.calls.append(("update", table))
        error = self._failure("update", table, {**match, **patch})
        if error:
            return QueryResult.fail(error)
        updated = []
        for row in self.tables[table]:
            if self._matches_all(row, match):
                row.update(patch)
                updated.append(dict(row))
        return QueryResult.ok(updated)

    def remove(self, table: str, match: dict[str, Any]) -> QueryResult:
        self.calls.append(("remove", table))
        error = self._failure("remove", table, match)
        if error:
            return QueryResult.fail(error)
        removed = [dict(r) for r in self.tables[table] if self._matches_all(r, match)]
        self.tables[table] = [r for r in self.tables[table] if not self._matches_all(r, match)]
        return QueryResult.ok(removed)


class FakeBillingSource:
    """Serves a fixed FileMaker response; None simulates a failed fetch."""

    def __init__(self, *field_data: dict[str, Any]):
        self.response: Optional[dict[str, Any]] = filemaker_response(*field_data)
        self.requests: list[tuple[date, date]] = []

    def fetch_records_for_date_range(self, start_date: date, end_date: date):
        self.requests.append((start_date, end_date))
        return self.response


@pytest.fixture
def window() -> SyncWindow:
    """March 2024 for the test organization."""
    return SyncWindow.for_month(ORG_ID, 2024, 3)


@pytest.fixture
def raw_filemaker_response() -> dict[str, Any]:
    """A realistic dapiRecords find response with two records."""
    return filemaker_response(
        billing_fields(
            "AbC-123",
            customer="Bright-Co Ltd. 9",
            project="Mobile App Revamp",
            hours="2.5",
            rate="120",
            day="03/04/2024",
            **{"Tasks::task": "Design", "Work Performed": "Wireframes", "f_billed": "1"},
        ),
        billing_fields(
            "X2",
            customer="",
            project="",
            hours="1",
            rate="",
            day="03/05/2024",
            **{"_custID": "", "Customers::chargeRate": "90"},
        ),
    )


@pytest.fixture
def fake_supabase() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path."""
    return tmp_path / "test_state.db"
