"""Event type for representing timed values in lazypat patterns."""

from __future__ import annotations

from dataclasses import dataclass

from lazypat.time import Duration


@dataclass(frozen=True)
class Event[T]:
    """A value placed in cycle time.

    Args:
        value: The value of the event
        start: Offset of the event from the start of its pattern
        duration: Length of the event
    """

    value: T
    start: Duration
    duration: Duration

    @property
    def end(self) -> Duration:
        return self.start + self.duration

    def shift(self, delta: Duration) -> Event[T]:
        """Shift the event by a time delta.

        Args:
            delta: The amount to shift by

        Returns:
            A new event shifted by the delta
        """
        return Event(self.value, self.start + delta, self.duration)

    def with_value[U](self, value: U) -> Event[U]:
        """Replace the value, keeping the timing."""
        return Event(value, self.start, self.duration)
