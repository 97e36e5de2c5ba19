"""
Typed failures raised by the repositories and the progression engine.

The HTTP layer maps each class to a status code; nothing below it knows about HTTP.
"""

from __future__ import annotations


class PathError(Exception):
    """Base class for every progression/persistence failure."""


class NotFound(PathError):
    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class Conflict(PathError):
    """Duplicate id (or another uniqueness constraint) on create."""


class InvalidTransition(PathError):
    """A status change the state machine does not allow, e.g. completing a locked node."""


class InvalidPathLayout(PathError):
    """Node set handed to create does not start at 1, has gaps, or has the wrong initial statuses."""


class StoreUnavailable(PathError):
    """Transport or transaction failure from the durable store. Always propagated."""


class DeadlineExceeded(StoreUnavailable):
    """The operation context expired or was cancelled before the store call finished."""
