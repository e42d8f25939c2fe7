"""
Repository result envelope.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class RepositoryResult(Generic[T]):
    """Typed success/failure of a repository call. Never raised, always returned."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "RepositoryResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "RepositoryResult[T]":
        return cls(success=False, error=error)
