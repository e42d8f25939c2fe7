"""
Sync staging store.

Persists the comparison of one (organization, start, end) window so a later
apply step runs against exactly the diff that was reviewed. Staging is an
optimization: every storage failure is logged and swallowed, and callers fall
back to recomputing the diff.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from ..schemas.comparison import SyncComparison

if TYPE_CHECKING:
    from ..schemas.window import SyncWindow
    from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

KEY_PREFIX = "sync_tracking"


def staging_key(window: SyncWindow) -> str:
    """Storage key for a window."""
    return f"{KEY_PREFIX}_{window.organization_id}_{window.start}_{window.end}"


@dataclass
class StagedComparison:
    """A comparison as it was staged, with its review timestamp."""

    comparison: SyncComparison
    last_review: str
    organization_id: str
    start_date: str
    end_date: str

    @property
    def has_pending(self) -> bool:
        return self.comparison.has_pending


class SyncStagingStore:
    """Best-effort, last-write-wins staging of comparisons per window."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def store(self, window: SyncWindow, comparison: SyncComparison) -> bool:
        """
        Stage comparison for window, overwriting any earlier entry.

        Returns:
            True if staged, False if the storage failed (logged)
        """
        payload = {
            **comparison.to_dict(),
            "last_review": datetime.now(timezone.utc).isoformat(),
            "date_range": {"start_date": window.start, "end_date": window.end},
            "organization_id": window.organization_id,
        }
        try:
            self.storage.set_item(staging_key(window), json.dumps(payload))
        except Exception as e:
            logger.error("Error storing sync tracking for %s: %s", window, e)
            return False

        logger.info(
            "Stored sync tracking for %d creates, %d updates, %d deletes",
            len(comparison.to_create),
            len(comparison.to_update),
            len(comparison.to_delete),
        )
        return True

    def get(self, window: SyncWindow) -> Optional[StagedComparison]:
        """Staged comparison for window, or None if absent or unreadable."""
        try:
            raw = self.storage.get_item(staging_key(window))
            if not raw:
                return None
            data: dict[str, Any] = json.loads(raw)
            date_range = data.get("date_range") or {}
            return StagedComparison(
                comparison=SyncComparison.from_dict(data),
                last_review=data.get("last_review", ""),
                organization_id=data.get("organization_id", window.organization_id),
                start_date=date_range.get("start_date", window.start),
                end_date=date_range.get("end_date", window.end),
            )
        except Exception as e:
            logger.error("Error getting sync tracking for %s: %s", window, e)
            return None

    def clear(self, window: SyncWindow) -> None:
        """Remove the staged comparison for window."""
        try:
            self.storage.remove_item(staging_key(window))
        except Exception as e:
            logger.error("Error clearing sync tracking for %s: %s", window, e)
            return
        logger.info("Cleared sync tracking for %s", window)

    def end_session(self) -> int:
        """End the storage session, dropping every staged window. Returns the count."""
        try:
            removed = self.storage.end_session()
        except Exception as e:
            logger.error("Error ending sync tracking session: %s", e)
            return 0
        logger.info("Ended sync tracking session, removed %d entries", removed)
        return removed

    def has_pending(self, window: SyncWindow) -> bool:
        """True iff a staged comparison exists with anything to create, update or delete."""
        staged = self.get(window)
        return staged is not None and staged.has_pending

    def pending_summary(self, window: SyncWindow) -> dict[str, Any]:
        """Counts of the staged operations for window."""
        staged = self.get(window)
        if staged is None:
            return {
                "has_pending": False,
                "to_create": 0,
                "to_update": 0,
                "to_delete": 0,
                "last_review": None,
            }
        comparison = staged.comparison
        return {
            "has_pending": comparison.has_pending,
            "to_create": len(comparison.to_create),
            "to_update": len(comparison.to_update),
            "to_delete": len(comparison.to_delete),
            "last_review": staged.last_review,
        }
