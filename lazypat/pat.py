"""Pattern types and operations for the lazypat pattern system.

A pattern is an immutable description of how to lazily produce a sequence of
events, together with the duration of one cycle of that sequence. Every call
to ``each_event`` starts a fresh, independent sequence, so one pattern can be
played by several streams at once.
"""

from __future__ import annotations

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from itertools import count, islice
from math import ceil
from typing import Any, Callable, Iterable, Iterator, List, Optional, override

from lazypat.common import InvalidDurationError
from lazypat.ev import Event
from lazypat.time import (
    INF,
    Duration,
    Length,
    Numeric,
    is_infinite,
    mk_length,
    mul_duration,
    numeric_frac,
)


def _islice_length[A](items: Iterable[A], length: Length) -> Iterator[A]:
    if is_infinite(length):
        return iter(items)
    return islice(items, int(length))


# sealed
class Pattern[T](metaclass=ABCMeta):
    """Base class for all patterns."""

    @abstractmethod
    def size(self) -> Length:
        """Number of events in one cycle (possibly ``INF``)."""
        raise NotImplementedError

    @abstractmethod
    def total_duration(self) -> Duration:
        """Duration of one cycle (possibly ``INF``)."""
        raise NotImplementedError

    @abstractmethod
    def each_event(self) -> Iterator[Event[T]]:
        """Start a fresh lazy sequence of the events of one cycle.

        Returns:
            An iterator over events ordered by start offset
        """
        raise NotImplementedError

    @staticmethod
    def pure(val: T) -> Pattern[T]:
        """Create a pattern with a single unit-length event.

        Args:
            val: The value to wrap

        Returns:
            A pattern containing the single value
        """
        return Pattern.values([val])

    @staticmethod
    def values(vals: Iterable[T]) -> Pattern[T]:
        """Create a pattern with one unit-length event per value.

        Args:
            vals: The values to play in order

        Returns:
            A pattern whose events follow each other without gaps
        """
        items = tuple(vals)
        return ValuePattern(lambda: iter(items), len(items), Fraction(1))

    @staticmethod
    def events(evs: Iterable[Event[T]]) -> Pattern[T]:
        """Create a pattern from explicit events.

        The cycle ends where the last event ends.

        Args:
            evs: Events ordered by start offset

        Returns:
            A pattern replaying the given events
        """
        items = tuple(evs)
        total = max((ev.end for ev in items), default=Fraction(0))
        return EventPattern(lambda: iter(items), len(items), total)

    @staticmethod
    def coerce(val: Any) -> Pattern[Any]:
        """Turn a pattern, a list of values or a single value into a pattern.

        Tuples are treated as single composite values (chords), not as lists.
        """
        if isinstance(val, Pattern):
            return val
        elif isinstance(val, list):
            return Pattern.values(val)
        else:
            return Pattern.pure(val)

    def seq(self, repeats: Length = INF) -> Pattern[T]:
        """Repeat the pattern's cycle.

        Args:
            repeats: Number of cycles to play, or ``INF``

        Returns:
            A pattern playing ``repeats`` cycles back to back
        """
        return SeqPattern(self, mk_length(repeats))

    def p(self, event_duration: Optional[Numeric] = None) -> Pattern[T]:
        """Resample the pattern onto a uniform grid.

        Each grid slot holds the value of the latest event starting at or
        before the slot. The total duration is unchanged.

        Args:
            event_duration: The grid step, or None to keep the pattern as is

        Returns:
            The resampled pattern

        Raises:
            InvalidDurationError: If the grid step is not positive
        """
        if event_duration is None:
            return self
        if is_infinite(event_duration):
            raise InvalidDurationError("Event duration", event_duration)
        step = numeric_frac(event_duration)
        if step <= 0:
            raise InvalidDurationError("Event duration", event_duration)
        return GridPattern(self, step)

    def map[U](self, fn: Callable[[T], U]) -> Pattern[U]:
        """Map a function over the pattern values.

        Args:
            fn: The function to apply to each value

        Returns:
            A new pattern with transformed values
        """
        return MapPattern(self, fn)

    def scale(
        self, from_lo: Numeric, from_hi: Numeric, to_lo: Numeric, to_hi: Numeric
    ) -> Pattern[Any]:
        """Linearly rescale numeric values from one range to another."""
        if from_hi == from_lo:
            raise ValueError("Source range of scale must not be empty")
        factor = (to_hi - to_lo) / (from_hi - from_lo)
        return self.map(lambda v: (v - from_lo) * factor + to_lo)

    def take(self, n: int) -> List[Event[T]]:
        """First ``n`` events of one cycle."""
        return list(islice(self.each_event(), n))

    def peek(self, n: int = 10) -> List[T]:
        """First ``n`` values of one cycle."""
        return [ev.value for ev in self.take(n)]

    def first(self) -> Optional[T]:
        for ev in self.each_event():
            return ev.value
        return None

    def cursor(self) -> EventCursor[T]:
        return EventCursor(self.each_event())


@dataclass(frozen=True, eq=False)
class ValuePattern[T](Pattern[T]):
    """Pattern of values, each filling one slot of ``delta``.

    Args:
        producer: Starts a fresh sequence of values
        length: Number of values per cycle
        delta: Duration of each value's slot
    """

    producer: Callable[[], Iterable[T]]
    length: Length
    delta: Fraction

    @override
    def size(self) -> Length:
        return self.length

    @override
    def total_duration(self) -> Duration:
        return mul_duration(self.length, self.delta)

    @override
    def each_event(self) -> Iterator[Event[T]]:
        for i, val in enumerate(_islice_length(self.producer(), self.length)):
            yield Event(val, self.delta * i, self.delta)


@dataclass(frozen=True, eq=False)
class EventPattern[T](Pattern[T]):
    """Pattern of explicitly timed events.

    Args:
        producer: Starts a fresh sequence of events
        length: Number of events per cycle
        total: Duration of one cycle
    """

    producer: Callable[[], Iterable[Event[T]]]
    length: Length
    total: Duration

    @override
    def size(self) -> Length:
        return self.length

    @override
    def total_duration(self) -> Duration:
        return self.total

    @override
    def each_event(self) -> Iterator[Event[T]]:
        return _islice_length(self.producer(), self.length)


@dataclass(frozen=True)
class SeqPattern[T](Pattern[T]):
    """Pattern repeating the cycle of another pattern.

    Args:
        pat: The pattern to repeat
        repeats: Number of cycles, or ``INF``
    """

    pat: Pattern[T]
    repeats: Length

    @override
    def size(self) -> Length:
        if self.repeats == 0:
            return 0
        if is_infinite(self.pat.total_duration()):
            return self.pat.size()
        inner = self.pat.size()
        if inner == 0:
            return 0
        if is_infinite(inner) or is_infinite(self.repeats):
            return INF
        return inner * self.repeats

    @override
    def total_duration(self) -> Duration:
        if self.repeats == 0:
            return Fraction(0)
        inner = self.pat.total_duration()
        if is_infinite(inner):
            return INF
        return mul_duration(self.repeats, inner)

    @override
    def each_event(self) -> Iterator[Event[T]]:
        if self.repeats == 0:
            return
        total = self.pat.total_duration()
        if is_infinite(total):
            # The first cycle never ends
            yield from self.pat.each_event()
            return
        counter = count() if is_infinite(self.repeats) else range(int(self.repeats))
        for k in counter:
            emitted = False
            offset = total * k
            for ev in self.pat.each_event():
                emitted = True
                yield ev.shift(offset)
            if not emitted:
                return


@dataclass(frozen=True)
class GridPattern[T](Pattern[T]):
    """Pattern resampled onto a uniform grid (sample and hold).

    Args:
        pat: The source pattern
        step: The grid step
    """

    pat: Pattern[T]
    step: Fraction

    @override
    def size(self) -> Length:
        total = self.pat.total_duration()
        if is_infinite(total):
            return INF
        return ceil(total / self.step)

    @override
    def total_duration(self) -> Duration:
        return self.pat.total_duration()

    @override
    def each_event(self) -> Iterator[Event[T]]:
        total = self.pat.total_duration()
        bounded = not is_infinite(total)
        source = self.pat.each_event()
        cur = next(source, None)
        if cur is None:
            return
        nxt = next(source, None)
        for k in count():
            slot = self.step * k
            if bounded and slot >= total:
                return
            while nxt is not None and nxt.start <= slot:
                cur = nxt
                nxt = next(source, None)
            end = slot + self.step
            if bounded and end > total:
                end = total
            yield Event(cur.value, slot, end - slot)


@dataclass(frozen=True)
class MapPattern[T, U](Pattern[U]):
    """Pattern applying a function to the values of another pattern."""

    pat: Pattern[T]
    fn: Callable[[T], U]

    @override
    def size(self) -> Length:
        return self.pat.size()

    @override
    def total_duration(self) -> Duration:
        return self.pat.total_duration()

    @override
    def each_event(self) -> Iterator[Event[U]]:
        for ev in self.pat.each_event():
            yield ev.with_value(self.fn(ev.value))


_UNSET: Any = object()


class EventCursor[T]:
    """Position-aware iterator over events.

    Exposes the next event without consuming it, and advances one event at a
    time.
    """

    def __init__(self, events: Iterable[Event[T]]):
        self._events = iter(events)
        self._head: Any = _UNSET

    def peek(self) -> Optional[Event[T]]:
        """Next event, or None when the sequence is exhausted."""
        if self._head is _UNSET:
            self._head = next(self._events, None)
        return self._head

    def advance(self) -> Optional[Event[T]]:
        """Consume and return the next event."""
        head = self.peek()
        if head is not None:
            self._head = _UNSET
        return head
