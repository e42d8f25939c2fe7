"""
Sync staging: session-scoped persistence of reviewed comparisons.
"""

from .sqlite_storage import SqliteSessionStorage
from .storage import KeyValueStorage, MemorySessionStorage
from .store import StagedComparison, SyncStagingStore, staging_key

__all__ = [
    "KeyValueStorage",
    "MemorySessionStorage",
    "SqliteSessionStorage",
    "StagedComparison",
    "SyncStagingStore",
    "staging_key",
]
