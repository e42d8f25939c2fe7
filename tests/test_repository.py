"""Tests for the customer_sales and customers repository adapters."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from conftest import ORG_ID, FakeSupabaseClient, make_billing

from clarity_sync.repository import CustomerRepository, SalesRepository, sales_row_from_billing
from clarity_sync.schemas import SyncWindow
from clarity_sync.supabase_client import QueryResult


def row(sales_id, day, organization_id=ORG_ID, financial_id="X1"):
    return {
        "id": sales_id,
        "financial_id": financial_id,
        "customer_id": "cust-1",
        "organization_id": organization_id,
        "product_name": "A:Website",
        "quantity": 1,
        "unit_price": 100,
        "total_price": 100,
        "date": day,
    }


class TestSalesRepository:
    """customer_sales reads and writes."""

    def test_fetch_for_window_filters_org_and_dates(self, window):
        store = FakeSupabaseClient(
            {
                "customer_sales": [
                    row("s-1", "2024-03-01"),
                    row("s-2", "2024-03-31T18:00:00"),
                    row("s-3", "2024-04-01"),
                    row("s-4", "2024-02-29"),
                    row("s-5", "2024-03-10", organization_id="org-2"),
                ]
            }
        )

        result = SalesRepository(store).fetch_for_window(window)

        assert result.success is True
        assert [s.id for s in result.data] == ["s-1", "s-2"]

    def test_fetch_query_shape(self, window):
        client = MagicMock()
        client.query.return_value = QueryResult.ok([])

        SalesRepository(client).fetch_for_window(window)

        kwargs = client.query.call_args.kwargs
        filters = {(f.op, f.column): f.value for f in kwargs["filters"]}
        assert filters[("eq", "organization_id")] == ORG_ID
        assert filters[("gte", "date")] == "2024-03-01"
        assert filters[("lt", "date")] == "2024-04-01"
        assert "customers(business_name)" in kwargs["select"]

    def test_fetch_failure(self, window):
        client = MagicMock()
        client.query.return_value = QueryResult.fail("503: Service Unavailable")

        result = SalesRepository(client).fetch_for_window(window)

        assert result.success is False
        assert "503" in result.error

    def test_client_exception_becomes_failure(self):
        client = MagicMock()
        client.insert.side_effect = RuntimeError("socket closed")

        result = SalesRepository(client).create({"financial_id": "X1"})

        assert result.success is False
        assert "socket closed" in result.error

    def test_create_update_delete(self):
        store = FakeSupabaseClient()
        repo = SalesRepository(store)

        created = repo.create(sales_row_from_billing(make_billing("X1"), "cust-1", ORG_ID))
        assert created.success is True
        sales_id = created.data.id

        updated = repo.update(sales_id, {"quantity": Decimal("2")})
        assert updated.data.quantity == Decimal("2")

        deleted = repo.delete(sales_id)
        assert deleted.success is True
        assert store.tables["customer_sales"] == []

    def test_update_missing_row_fails(self):
        result = SalesRepository(FakeSupabaseClient()).update("nope", {"quantity": 1})
        assert result.success is False

    def test_sales_row_from_billing(self):
        billing = make_billing(
            "X1", customer_name="Acme Corp 2", project_name="Website Redesign",
            hours="2.5", rate="80", day=date(2024, 3, 9),
        )

        payload = sales_row_from_billing(billing, "cust-7", ORG_ID)

        assert payload == {
            "financial_id": "X1",
            "customer_id": "cust-7",
            "organization_id": ORG_ID,
            "product_name": "AC2:Website",
            "quantity": Decimal("2.5"),
            "unit_price": Decimal("80"),
            "total_price": Decimal("200.0"),
            "date": "2024-03-09",
        }


class TestCustomerRepository:
    """customers / customer_organization access."""

    def test_find_by_name(self):
        store = FakeSupabaseClient({"customers": [{"id": 3, "business_name": "Acme"}]})
        repo = CustomerRepository(store)

        assert repo.find_by_name("Acme").data == "3"
        assert repo.find_by_name("Other").data is None

    def test_create_sets_customer_type(self):
        store = FakeSupabaseClient()
        result = CustomerRepository(store).create("Beta Labs")

        assert result.success is True
        assert store.tables["customers"][0]["type"] == "CUSTOMER"

    def test_organization_link(self):
        repo = CustomerRepository(FakeSupabaseClient())

        assert repo.has_organization_link("c-1", ORG_ID).data is False
        assert repo.create_organization_link("c-1", ORG_ID).success is True
        assert repo.has_organization_link("c-1", ORG_ID).data is True
        assert repo.has_organization_link("c-1", "org-2").data is False

    def test_lookup_failure(self):
        client = MagicMock()
        client.query.return_value = QueryResult.fail("401: JWT expired")
        result = CustomerRepository(client).find_by_name("Acme")
        assert result.success is False


class TestWindowHelpers:
    def test_window_str(self):
        assert str(SyncWindow.for_month(ORG_ID, 2024, 3)) == f"{ORG_ID} 2024-03-01..2024-03-31"
