"""
Customer resolution: billing customer name -> local customer id.

Two modes share one cache per run:
- lookup-only (comparison and dry runs): a missing customer resolves to None
- create-missing (apply): create the customer if absent and make sure it is
  linked to the organization
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..repository import CustomerRepository

logger = logging.getLogger(__name__)


class CustomerResolutionError(Exception):
    """The customer repository failed while resolving a customer."""


class CustomerResolver:
    """Resolves customer names against the customers table for one organization."""

    def __init__(
        self,
        customers: CustomerRepository,
        organization_id: str,
        create_missing: bool = False,
    ) -> None:
        self.customers = customers
        self.organization_id = organization_id
        self.create_missing = create_missing
        self._cache: dict[str, Optional[str]] = {}
        self._linked: set[str] = set()

    def __call__(self, customer_name: str) -> Optional[str]:
        return self.resolve(customer_name)

    def resolve(self, customer_name: str) -> Optional[str]:
        """
        Local customer id for an exact business name.

        Raises:
            CustomerResolutionError: If a lookup, create or link call fails
        """
        if customer_name in self._cache:
            return self._cache[customer_name]

        found = self.customers.find_by_name(customer_name)
        if not found.success:
            raise CustomerResolutionError(
                f"Customer lookup failed for {customer_name!r}: {found.error}"
            )
        customer_id = found.data

        if customer_id is None and self.create_missing:
            created = self.customers.create(customer_name)
            if not created.success:
                raise CustomerResolutionError(created.error or "Failed to create customer")
            customer_id = created.data

        if customer_id is not None and self.create_missing:
            self._ensure_link(customer_id)

        self._cache[customer_name] = customer_id
        return customer_id

    def _ensure_link(self, customer_id: str) -> None:
        """Create the customer_organization row unless it already exists."""
        if customer_id in self._linked:
            return

        existing = self.customers.has_organization_link(customer_id, self.organization_id)
        if not existing.success:
            raise CustomerResolutionError(
                f"Organization link lookup failed for customer {customer_id}: {existing.error}"
            )
        if not existing.data:
            linked = self.customers.create_organization_link(customer_id, self.organization_id)
            if not linked.success:
                raise CustomerResolutionError(linked.error or "Failed to link customer")
            logger.info(
                "Linked customer %s to organization %s", customer_id, self.organization_id
            )

        self._linked.add(customer_id)
