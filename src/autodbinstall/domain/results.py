"""
Railway-oriented result types for installation steps.

Every step of the per-host install flow returns one of three outcomes:

- ``Success``: the step did what it was asked to do.
- ``Failure(recoverable=True)``: the step failed, the failure becomes a
  note on the host result and the flow continues.
- ``Failure(recoverable=False)``: the step failed and the host is aborted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

T = TypeVar('T')
E = TypeVar('E')


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful step result."""
    value: T
    metadata: dict[str, Any] | None = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            object.__setattr__(self, 'timestamp', datetime.now())


@dataclass(frozen=True)
class Failure(Generic[E]):
    """Failed step result."""
    error: E
    context: dict[str, Any] | None = None
    recoverable: bool = False
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            object.__setattr__(self, 'timestamp', datetime.now())


# Type alias for Railway Result
Result = Success[T] | Failure[E]


def recoverable(error: E, **context: Any) -> Failure[E]:
    """Build a failure that only produces a note."""
    return Failure(error, context=context or None, recoverable=True)


def fatal(error: E, **context: Any) -> Failure[E]:
    """Build a failure that aborts the current host."""
    return Failure(error, context=context or None, recoverable=False)


def is_fatal(result: Result[Any, Any]) -> bool:
    """True for a non-recoverable failure."""
    return isinstance(result, Failure) and not result.recoverable
