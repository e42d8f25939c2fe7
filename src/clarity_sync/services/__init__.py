"""Sync services: customer resolution and the financial synchronizer."""

from clarity_sync.services.customer_resolver import CustomerResolutionError, CustomerResolver
from clarity_sync.services.synchronizer import (
    FinancialSyncService,
    SyncAbortedError,
    SyncChanges,
    SyncError,
    SyncResult,
    SyncStatus,
    SyncSummary,
    SyncType,
)

__all__ = [
    "CustomerResolutionError",
    "CustomerResolver",
    "FinancialSyncService",
    "SyncAbortedError",
    "SyncChanges",
    "SyncError",
    "SyncResult",
    "SyncStatus",
    "SyncSummary",
    "SyncType",
]
