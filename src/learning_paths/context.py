"""
Per-call deadline and cancellation carrier.

Every repository operation accepts an optional ``OperationContext``. Adapters call
``check()`` before touching the store and use ``remaining()`` to bound statement
time; an expired context aborts the call with ``DeadlineExceeded``.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from learning_paths.errors import DeadlineExceeded


@dataclass
class OperationContext:
    deadline: Optional[float] = None  # time.monotonic() value
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "OperationContext":
        if not seconds or seconds <= 0:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, operation: str = "operation") -> None:
        if self.cancelled:
            raise DeadlineExceeded(f"{operation} cancelled")
        if self.expired():
            raise DeadlineExceeded(f"{operation} deadline exceeded")


def ensure_context(ctx: Optional[OperationContext]) -> OperationContext:
    return ctx if ctx is not None else OperationContext()
