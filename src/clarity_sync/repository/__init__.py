"""
Repository adapters over the relational store.
"""

from .base import RepositoryResult
from .customers import CustomerRepository
from .sales import SalesRepository, sales_row_from_billing

__all__ = [
    "CustomerRepository",
    "RepositoryResult",
    "SalesRepository",
    "sales_row_from_billing",
]
