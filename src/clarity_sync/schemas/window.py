"""
Sync window: one organization and one inclusive date range.

The same window drives both the FileMaker fetch and the customer_sales fetch,
so the two sides of a comparison can never be read over different ranges.
"""

import calendar
from dataclasses import dataclass
from datetime import date

from .values import parse_record_date


@dataclass(frozen=True)
class SyncWindow:
    """Organization plus inclusive [start_date, end_date] range."""

    organization_id: str
    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if not self.organization_id:
            raise ValueError("organization_id is required")
        if self.start_date > self.end_date:
            raise ValueError(
                f"start_date {self.start_date.isoformat()} is after "
                f"end_date {self.end_date.isoformat()}"
            )

    @property
    def start(self) -> str:
        """Start date as YYYY-MM-DD."""
        return self.start_date.isoformat()

    @property
    def end(self) -> str:
        """End date as YYYY-MM-DD."""
        return self.end_date.isoformat()

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def __str__(self) -> str:
        return f"{self.organization_id} {self.start}..{self.end}"

    @classmethod
    def from_strings(cls, organization_id: str, start: str, end: str) -> "SyncWindow":
        """Build from YYYY-MM-DD (or MM/DD/YYYY) strings."""
        start_date = parse_record_date(start)
        end_date = parse_record_date(end)
        if start_date is None:
            raise ValueError(f"Invalid start date: {start!r}")
        if end_date is None:
            raise ValueError(f"Invalid end date: {end!r}")
        return cls(organization_id, start_date, end_date)

    @classmethod
    def for_month(cls, organization_id: str, year: int, month: int) -> "SyncWindow":
        """Window covering one calendar month."""
        last_day = calendar.monthrange(year, month)[1]
        return cls(organization_id, date(year, month, 1), date(year, month, last_day))

    @classmethod
    def current_month(cls, organization_id: str, today: date | None = None) -> "SyncWindow":
        today = today or date.today()
        return cls.for_month(organization_id, today.year, today.month)

    @classmethod
    def previous_month(cls, organization_id: str, today: date | None = None) -> "SyncWindow":
        today = today or date.today()
        if today.month == 1:
            return cls.for_month(organization_id, today.year - 1, 12)
        return cls.for_month(organization_id, today.year, today.month - 1)

    @classmethod
    def months_between(
        cls, organization_id: str, first: date, last: date
    ) -> list["SyncWindow"]:
        """One window per calendar month from first's month through last's month."""
        windows = []
        year, month = first.year, first.month
        while (year, month) <= (last.year, last.month):
            windows.append(cls.for_month(organization_id, year, month))
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return windows
