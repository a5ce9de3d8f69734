"""Generator functions building patterns procedurally.

Every combinator validates its arguments when the pattern is built. Random
combinators draw fresh randomness each time the pattern is played, not when
it is constructed.
"""

from __future__ import annotations

import math
import random
from fractions import Fraction
from itertools import count
from typing import Iterable, Iterator, Sequence

from lazypat.common import EmptyListError, InvalidDurationError
from lazypat.ev import Event
from lazypat.pat import EventPattern, Pattern, ValuePattern
from lazypat.time import INF, Length, Numeric, is_infinite, mk_length, numeric_frac

__all__ = ["series", "geom", "rand", "xrand", "shuf", "sin", "sin1"]

_UNIT = Fraction(1)


def _loop_n(length: Length) -> Iterator[int]:
    if is_infinite(length):
        return count()
    return iter(range(int(length)))


def _candidates[T](name: str, items: Iterable[T]) -> Sequence[T]:
    candidates = tuple(items)
    if not candidates:
        raise EmptyListError(name)
    return candidates


# =============================================================================
# Numeric Series
# =============================================================================


def series(start: Numeric = 0, step: Numeric = 1, length: Length = INF) -> Pattern[Numeric]:
    """Create an arithmetic series pattern.

    Examples:
        series().peek()           -> [0, 1, 2, 3, 4, 5, 6, 7, 8, 9]
        series(3).peek(3)         -> [3, 4, 5]
        series(0, 2, 4).peek()    -> [0, 2, 4, 6]

    Args:
        start: The first value
        step: Amount added for each following value
        length: Number of values, or ``INF``

    Returns:
        A pattern of ``length`` unit-length events
    """
    length = mk_length(length)

    def produce() -> Iterator[Numeric]:
        cur = start
        for _ in _loop_n(length):
            yield cur
            cur += step

    return ValuePattern(produce, length, _UNIT)


def geom(start: Numeric = 0, grow: Numeric = 1, length: Length = INF) -> Pattern[Numeric]:
    """Create a geometric series pattern.

    Examples:
        geom(1, 2).peek(5)               -> [1, 2, 4, 8, 16]
        geom(1, Fraction(1, 2), 3).peek() -> [1, 1/2, 1/4]

    Args:
        start: The first value
        grow: Factor each following value is multiplied by
        length: Number of values, or ``INF``

    Returns:
        A pattern of ``length`` unit-length events
    """
    length = mk_length(length)

    def produce() -> Iterator[Numeric]:
        cur = start
        for _ in _loop_n(length):
            yield cur
            cur *= grow

    return ValuePattern(produce, length, _UNIT)


# =============================================================================
# Random Choice
# =============================================================================


def rand[T](items: Iterable[T], repeats: Length = 1) -> Pattern[T]:
    """Choose items from the list uniformly and independently.

    Args:
        items: The candidates
        repeats: Number of draws, or ``INF``

    Raises:
        EmptyListError: If there are no candidates
    """
    candidates = _candidates("rand", items)
    repeats = mk_length(repeats)

    def produce() -> Iterator[T]:
        for _ in _loop_n(repeats):
            yield random.choice(candidates)

    return ValuePattern(produce, repeats, _UNIT)


def xrand[T](items: Iterable[T], repeats: Length = 1) -> Pattern[T]:
    """Choose randomly, but only repeat an item after all items were chosen.

    Draws come in passes of ``len(items)``; each pass is a fresh shuffle of
    the items. A pass never starts with the item that ended the previous one.

    Args:
        items: The candidates
        repeats: Number of draws, or ``INF``

    Raises:
        EmptyListError: If there are no candidates
    """
    candidates = _candidates("xrand", items)
    repeats = mk_length(repeats)
    size = len(candidates)

    def produce() -> Iterator[T]:
        order: list[int] = []
        for i in _loop_n(repeats):
            pos = i % size
            if pos == 0:
                last = order[-1] if order else None
                order = random.sample(range(size), size)
                if size > 1 and order[0] == last:
                    swap = random.randrange(1, size)
                    order[0], order[swap] = order[swap], order[0]
            yield candidates[order[pos]]

    return ValuePattern(produce, repeats, _UNIT)


def shuf[T](items: Iterable[T], repeats: Length = 1) -> Pattern[T]:
    """Shuffle the list once and play that order ``repeats`` times.

    Args:
        items: The items to shuffle
        repeats: Number of passes over the shuffled items, or ``INF``

    Raises:
        EmptyListError: If there are no items
    """
    candidates = _candidates("shuf", items)
    repeats = mk_length(repeats)
    length: Length = INF if is_infinite(repeats) else len(candidates) * repeats

    def produce() -> Iterator[T]:
        shuffled = random.sample(candidates, len(candidates))
        for _ in _loop_n(repeats):
            yield from shuffled

    return ValuePattern(produce, length, _UNIT)


# =============================================================================
# Oscillators
# =============================================================================


def _check_quant(quant: int, dur: Numeric) -> Fraction:
    if isinstance(quant, bool) or not isinstance(quant, int) or quant <= 0:
        raise InvalidDurationError("Sine quantization", quant)
    if is_infinite(dur):
        raise InvalidDurationError("Sine duration", dur)
    frac_dur = numeric_frac(dur)
    if frac_dur <= 0:
        raise InvalidDurationError("Sine duration", dur)
    return frac_dur


def sin(quant: int, dur: Numeric = 1) -> Pattern[float]:
    """Sample one period of a sine wave.

    Args:
        quant: Number of samples in the period
        dur: Length of the period

    Returns:
        A pattern of ``quant`` events of ``dur / quant`` each, with values
        ``sin(2 * pi * i / quant)``
    """
    frac_dur = _check_quant(quant, dur)
    event_dur = frac_dur / quant

    def produce() -> Iterator[Event[float]]:
        for i in range(quant):
            yield Event(math.sin(2 * math.pi * i / quant), event_dur * i, event_dur)

    return EventPattern(produce, quant, frac_dur)


def sin1(quant: int, dur: Numeric = 1) -> Pattern[float]:
    """Like ``sin`` but rescaled from [-1, 1] to [0, 1]."""
    frac_dur = _check_quant(quant, dur)
    return sin(quant, frac_dur).scale(-1, 1, 0, 1).p(frac_dur / quant)
