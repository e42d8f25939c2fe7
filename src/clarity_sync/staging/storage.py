"""
Session-scoped key/value storage interface.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """
    String key → string value storage scoped to one session.

    Implementations may raise on any call (quota, I/O); the staging store
    treats those failures as "staging unavailable".
    """

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    @abstractmethod
    def end_session(self) -> int:
        """Drop every entry of the session. Returns the number removed."""


class MemorySessionStorage(KeyValueStorage):
    """Process-lifetime storage; the session ends with the process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def end_session(self) -> int:
        """Drop everything. Returns the number of entries removed."""
        removed = len(self._items)
        self._items.clear()
        return removed
