from dataclasses import FrozenInstanceError
from fractions import Fraction

import pytest

from lazypat.ev import Event


def test_ev_creation() -> None:
    """Test basic Event creation."""
    ev = Event("test", Fraction(1), Fraction(1, 2))
    assert ev.value == "test"
    assert ev.start == Fraction(1)
    assert ev.duration == Fraction(1, 2)
    assert ev.end == Fraction(3, 2)


def test_ev_shift() -> None:
    """Test Event shift operation."""
    ev = Event("test", Fraction(1), Fraction(1))
    shifted = ev.shift(Fraction(2))
    assert shifted.start == Fraction(3)
    assert shifted.end == Fraction(4)
    assert shifted.value == "test"
    # The source event is unchanged
    assert ev.start == Fraction(1)


def test_ev_with_value() -> None:
    ev = Event(1, Fraction(0), Fraction(1, 4))
    assert ev.with_value("x") == Event("x", Fraction(0), Fraction(1, 4))


def test_ev_is_immutable() -> None:
    ev = Event(1, Fraction(0), Fraction(1))
    with pytest.raises(FrozenInstanceError):
        ev.value = 2  # type: ignore[misc]
