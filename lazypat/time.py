"""Numeric and time types for lazypat patterns.

Pattern time is measured in cycles. Offsets and durations inside a pattern
are exact fractions; lengths and durations may also be unbounded, which is
represented by ``INF``.
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Any, NewType, Union

# =============================================================================
# Core Numeric Types and Utilities
# =============================================================================

Numeric = Union[int, float, Fraction]
"""Type alias for numeric values that can be converted to Fraction."""

INF = math.inf
"""Unbounded length or duration."""

type Length = Union[int, float]
"""Number of events or repeats: a non-negative int or ``INF``."""

type Duration = Union[Fraction, float]
"""A span of cycle time: a Fraction or ``INF``."""

PosixTime = NewType("PosixTime", float)
"""Wall clock time (seconds since epoch)."""

PosixDelta = NewType("PosixDelta", float)
"""Wall clock duration in seconds."""

Cps = NewType("Cps", Fraction)
"""Cycles per second."""


def is_numeric(value: Any) -> bool:
    """Check if a value is a numeric type.

    Args:
        value: The value to check

    Returns:
        True if the value is int, float, or Fraction (bools excluded)
    """
    return isinstance(value, (int, float, Fraction)) and not isinstance(value, bool)


def is_infinite(value: Any) -> bool:
    return isinstance(value, float) and math.isinf(value) and value > 0


def numeric_frac(numeric: Numeric) -> Fraction:
    """Convert a numeric value to a Fraction.

    Args:
        numeric: The numeric value to convert

    Returns:
        The value as a Fraction

    Raises:
        ValueError: If the value cannot be converted to a Fraction
    """
    if isinstance(numeric, Fraction):
        return numeric
    elif isinstance(numeric, bool):
        raise ValueError(f"Cannot convert {type(numeric)} to Fraction")
    elif isinstance(numeric, int):
        return Fraction(numeric)
    elif isinstance(numeric, float):
        if not math.isfinite(numeric):
            raise ValueError(f"Cannot convert {numeric} to Fraction")
        return Fraction(numeric).limit_denominator()
    else:
        raise ValueError(f"Cannot convert {type(numeric)} to Fraction")


def mk_length(length: Length) -> Length:
    """Validate an event count or repeat count.

    Args:
        length: A non-negative integer or ``INF``

    Returns:
        The validated length

    Raises:
        ValueError: If the length is negative or not a whole number
    """
    if is_infinite(length):
        return INF
    if isinstance(length, bool) or not isinstance(length, int):
        raise ValueError(f"Length must be a non-negative integer or INF, got {length!r}")
    if length < 0:
        raise ValueError(f"Length must be a non-negative integer or INF, got {length!r}")
    return length


def mk_duration(duration: Numeric) -> Duration:
    """Convert a duration to its exact form, keeping ``INF`` as is."""
    if is_infinite(duration):
        return INF
    return numeric_frac(duration)


def mul_duration(length: Length, delta: Duration) -> Duration:
    """Total duration of ``length`` slots of ``delta`` each."""
    if length == 0 or delta == 0:
        return Fraction(0)
    if is_infinite(length) or is_infinite(delta):
        return INF
    return numeric_frac(delta) * length


def cycle_start(ts: Numeric, total: Duration) -> Numeric:
    """Round a timestamp down to the nearest multiple of a cycle duration.

    An unbounded cycle starts at zero.
    """
    if is_infinite(total):
        return 0
    return ts - (ts % total)
