"""
customers / customer_organization repository adapter.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..supabase_client import QueryFilter
from .base import RepositoryResult

if TYPE_CHECKING:
    from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

CUSTOMERS_TABLE = "customers"
CUSTOMER_ORGANIZATION_TABLE = "customer_organization"
CUSTOMER_TYPE = "CUSTOMER"


class CustomerRepository:
    """Lookup and creation of local customers and their organization links."""

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    def find_by_name(self, business_name: str) -> RepositoryResult[str | None]:
        """Id of the first customer with exactly this business name, or None."""
        try:
            result = self.client.query(
                CUSTOMERS_TABLE,
                select="id, business_name",
                filters=[QueryFilter("eq", "business_name", business_name)],
            )
        except Exception as e:
            logger.exception("Customer lookup failed for %r", business_name)
            return RepositoryResult.fail(str(e))
        if not result.success:
            return RepositoryResult.fail(result.error or "Customer lookup failed")
        if not result.data:
            return RepositoryResult.ok(None)
        return RepositoryResult.ok(str(result.data[0]["id"]))

    def create(self, business_name: str) -> RepositoryResult[str]:
        try:
            result = self.client.insert(
                CUSTOMERS_TABLE, {"business_name": business_name, "type": CUSTOMER_TYPE}
            )
        except Exception as e:
            logger.exception("Customer creation failed for %r", business_name)
            return RepositoryResult.fail(str(e))
        if not result.success or not result.data:
            return RepositoryResult.fail(
                f"Failed to create customer: {result.error or 'no row returned'}"
            )
        logger.info("Created customer %r", business_name)
        return RepositoryResult.ok(str(result.data[0]["id"]))

    def has_organization_link(
        self, customer_id: str, organization_id: str
    ) -> RepositoryResult[bool]:
        try:
            result = self.client.query(
                CUSTOMER_ORGANIZATION_TABLE,
                select="customer_id, organization_id",
                filters=[
                    QueryFilter("eq", "customer_id", customer_id),
                    QueryFilter("eq", "organization_id", organization_id),
                ],
            )
        except Exception as e:
            logger.exception("Organization link lookup failed for customer %s", customer_id)
            return RepositoryResult.fail(str(e))
        if not result.success:
            return RepositoryResult.fail(result.error or "Organization link lookup failed")
        return RepositoryResult.ok(bool(result.data))

    def create_organization_link(
        self, customer_id: str, organization_id: str
    ) -> RepositoryResult[None]:
        try:
            result = self.client.insert(
                CUSTOMER_ORGANIZATION_TABLE,
                {"customer_id": customer_id, "organization_id": organization_id},
            )
        except Exception as e:
            logger.exception("Organization link creation failed for customer %s", customer_id)
            return RepositoryResult.fail(str(e))
        if not result.success:
            return RepositoryResult.fail(
                f"Failed to link customer to organization: {result.error}"
            )
        return RepositoryResult.ok()
