import threading
import time
from fractions import Fraction
from typing import Any, List

import pytest

from lazypat.clock import ManualClock, ThreadClock, Timing
from lazypat.common import InvalidDurationError


class Recorder:
    def __init__(self) -> None:
        self.ticks: List[Any] = []
        self.ticked = threading.Event()

    def notify(self, now: Any) -> None:
        self.ticks.append(now)
        self.ticked.set()


class Failing:
    def notify(self, now: Any) -> None:
        raise RuntimeError("boom")


def test_manual_clock_tick() -> None:
    clock = ManualClock()
    sub = Recorder()
    clock.subscribe(sub)
    clock.tick()
    clock.tick(Fraction(3, 2))
    assert sub.ticks == [0, Fraction(3, 2)]
    assert clock.now() == Fraction(3, 2)
    assert clock.at(Fraction(3, 2)) == Fraction(3, 2)


def test_manual_clock_subscriptions() -> None:
    """Test subscribing twice notifies once and unsubscribed clocks stay silent."""
    clock = ManualClock()
    sub = Recorder()
    clock.subscribe(sub)
    clock.subscribe(sub)
    assert clock.subscribers() == [sub]
    clock.tick(1)
    assert sub.ticks == [1]
    clock.unsubscribe(sub)
    clock.tick(2)
    assert sub.ticks == [1]


def test_manual_clock_run() -> None:
    clock = ManualClock(start=1)
    sub = Recorder()
    clock.subscribe(sub)
    clock.run(2, Fraction(1, 4))
    assert sub.ticks == [Fraction(4 + i, 4) for i in range(5)]
    assert clock.now() == 2


def test_manual_clock_run_rejects_bad_step() -> None:
    with pytest.raises(InvalidDurationError, match="Tick step"):
        ManualClock().run(1, 0)


def test_manual_clock_propagates_errors() -> None:
    clock = ManualClock()
    clock.subscribe(Failing())
    with pytest.raises(RuntimeError, match="boom"):
        clock.tick(0)


def test_timing_defaults() -> None:
    timing = Timing.initial()
    assert timing.cps == Fraction(1, 2)
    assert timing.resolution == pytest.approx(0.01)
    assert timing.set_cps(2).cps == 2
    assert timing.set_cps(2).resolution == timing.resolution


@pytest.mark.parametrize("cps,resolution", [(0, 0.01), (-1, 0.01), (1, 0), (1, -0.5)])
def test_timing_rejects_bad_values(cps: float, resolution: float) -> None:
    with pytest.raises(InvalidDurationError):
        Timing.initial(cps=cps, resolution=resolution)


def test_thread_clock_time() -> None:
    """Test the threaded clock counts cycles and maps them to posix time."""
    clock = ThreadClock(Timing.initial(cps=2))
    first = clock.now()
    time.sleep(0.02)
    second = clock.now()
    assert second > first
    assert clock.at(clock.now()) == pytest.approx(time.time(), abs=0.05)
    # One cycle later is half a second later
    assert clock.at(second + 1) - clock.at(second) == pytest.approx(0.5)


def test_thread_clock_set_cps_keeps_position() -> None:
    clock = ThreadClock(Timing.initial(cps=1))
    before = clock.now()
    clock.set_cps(4)
    after = clock.now()
    assert clock.timing.cps == 4
    assert after >= before
    assert after - before < 0.1
    assert clock.at(after + 1) - clock.at(after) == pytest.approx(0.25)


def test_thread_clock_ticks_subscribers() -> None:
    clock = ThreadClock(Timing.initial(resolution=0.001))
    sub = Recorder()
    clock.subscribe(sub)
    with clock:
        assert clock.running()
        assert sub.ticked.wait(timeout=1.0)
    assert not clock.running()
    count = len(sub.ticks)
    time.sleep(0.02)
    assert len(sub.ticks) == count
    assert sub.ticks == sorted(sub.ticks)


def test_thread_clock_survives_failing_subscriber(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test one failing subscriber does not stop the others."""
    clock = ThreadClock(Timing.initial(resolution=0.001))
    clock.subscribe(Failing())
    sub = Recorder()
    clock.subscribe(sub)
    clock.tick()
    assert len(sub.ticks) == 1
    assert "Dropping tick" in caplog.text
