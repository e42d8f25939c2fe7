"""
FileMaker Data API Client (billing source).

Provides:
- Date range finds on the billing layout
- Pagination over offset/limit
- Retry/backoff for transient network failures
"""

from .client import (
    FileMakerAPIError,
    FileMakerClient,
    FileMakerConnectionError,
    FileMakerError,
    to_filemaker_date,
)

__all__ = [
    "FileMakerAPIError",
    "FileMakerClient",
    "FileMakerConnectionError",
    "FileMakerError",
    "to_filemaker_date",
]
