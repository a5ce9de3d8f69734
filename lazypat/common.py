"""Common utilities for the lazypat pattern system."""

from __future__ import annotations

from threading import Lock
from typing import Any


class LazypatError(Exception):
    """Base class for all lazypat errors."""

    pass


class EmptyListError(LazypatError, ValueError):
    """A sampling combinator was given no candidates."""

    def __init__(self, name: str):
        super().__init__(f"{name} requires a non-empty list of items")


class InvalidDurationError(LazypatError, ValueError):
    """A cycle length or event duration is not positive."""

    def __init__(self, what: str, value: Any):
        super().__init__(f"{what} must be positive, got {value!r}")


class UnboundGateError(LazypatError, ValueError):
    """The gate parameter is not part of the bound source."""

    def __init__(self, gate: str, params: Any):
        super().__init__(
            f"Gate parameter '{gate}' is not bound (bound parameters: {sorted(params)})"
        )


class Mutex[T]:
    """A mutex that provides exclusive access to a value.

    Uses the context manager protocol to handle lock acquisition and release.
    """

    def __init__(self, value: T):
        self._lock = Lock()
        self._value = value

    def __enter__(self) -> T:
        self._lock.acquire()
        return self._value

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    def peek(self) -> T:
        """Return the value without locking, for inspection only."""
        return self._value
