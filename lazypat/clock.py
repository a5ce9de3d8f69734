"""Clocks driving streams.

A clock supplies the current time in cycles, converts cycle positions to
schedulable timestamps and periodically notifies its subscribers.
"""

from __future__ import annotations

import logging
import time
from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
from fractions import Fraction
from threading import Event, Lock, Thread
from typing import Any, List, Optional, Protocol, override

from lazypat.common import InvalidDurationError
from lazypat.time import Cps, Numeric, PosixDelta, PosixTime, numeric_frac

_DEFAULT_CPS = Fraction(1, 2)
"""Default cycles per second (tempo)."""

_DEFAULT_RESOLUTION = PosixDelta(0.01)
"""Default wall time between ticks."""


class Subscriber(Protocol):
    def notify(self, now: Any) -> None: ...


class Clock(metaclass=ABCMeta):
    """Abstract time source for streams."""

    def __init__(self) -> None:
        self._subs_lock = Lock()
        self._subs: List[Subscriber] = []

    @abstractmethod
    def now(self) -> Any:
        """Current time in cycles."""
        raise NotImplementedError

    @abstractmethod
    def at(self, pos: Any) -> Any:
        """Absolute schedulable timestamp for a cycle position."""
        raise NotImplementedError

    def subscribe(self, sub: Subscriber) -> None:
        with self._subs_lock:
            if not any(s is sub for s in self._subs):
                self._subs.append(sub)

    def unsubscribe(self, sub: Subscriber) -> None:
        with self._subs_lock:
            self._subs = [s for s in self._subs if s is not sub]

    def subscribers(self) -> List[Subscriber]:
        with self._subs_lock:
            return list(self._subs)


class ManualClock(Clock):
    """Clock advanced explicitly by the caller.

    Time does not pass on its own: ``tick`` sets the current time and notifies
    every subscriber synchronously, so errors raised by a subscriber reach the
    caller. Timestamps are cycle positions themselves.
    """

    def __init__(self, start: Numeric = 0) -> None:
        super().__init__()
        self._now: Numeric = start

    @override
    def now(self) -> Numeric:
        return self._now

    @override
    def at(self, pos: Numeric) -> Numeric:
        return pos

    def tick(self, now: Optional[Numeric] = None) -> None:
        """Notify all subscribers, optionally moving the clock first."""
        if now is not None:
            self._now = now
        for sub in self.subscribers():
            sub.notify(self._now)

    def run(self, until: Numeric, step: Numeric) -> None:
        """Tick every ``step`` from the current time up to ``until`` (inclusive)."""
        frac_step = numeric_frac(step)
        if frac_step <= 0:
            raise InvalidDurationError("Tick step", step)
        cur = self._now
        while cur <= until:
            self.tick(cur)
            cur = cur + frac_step


def _check_cps(cps: Numeric) -> Cps:
    frac = numeric_frac(cps)
    if frac <= 0:
        raise InvalidDurationError("Cycles per second", cps)
    return Cps(frac)


@dataclass(frozen=True)
class Timing:
    """Timing configuration of a threaded clock (frozen for immutability)."""

    cps: Cps
    """Cycles per second (tempo)."""

    resolution: PosixDelta
    """Wall time between ticks."""

    @staticmethod
    def initial(
        cps: Optional[Numeric] = None, resolution: Optional[float] = None
    ) -> Timing:
        """Create a Timing instance, filling in defaults."""
        cps = _check_cps(cps if cps is not None else _DEFAULT_CPS)
        resolution = resolution if resolution is not None else _DEFAULT_RESOLUTION
        if resolution <= 0:
            raise InvalidDurationError("Tick resolution", resolution)
        return Timing(cps=cps, resolution=PosixDelta(float(resolution)))

    def set_cps(self, cps: Numeric) -> Timing:
        return Timing(cps=_check_cps(cps), resolution=self.resolution)


class ThreadClock(Clock):
    """Clock ticking its subscribers from a background thread.

    ``now`` is the number of cycles elapsed since the clock was created and
    ``at`` maps a cycle position to POSIX time.
    """

    def __init__(self, timing: Optional[Timing] = None, name: str = "lazypat-clock"):
        super().__init__()
        self._logger = logging.getLogger(__name__)
        self._name = name
        self._timing = timing if timing is not None else Timing.initial()
        self._anchor_lock = Lock()
        # Cycle position at the anchor, and the monotonic and posix times of the anchor
        self._anchor_cycle: float = 0.0
        self._anchor_mono = time.monotonic()
        self._anchor_posix = time.time()
        self._halt = Event()
        self._thread: Optional[Thread] = None

    @property
    def timing(self) -> Timing:
        return self._timing

    def set_cps(self, cps: Numeric) -> None:
        """Change the tempo without moving the current cycle position."""
        timing = self._timing.set_cps(cps)
        with self._anchor_lock:
            mono = time.monotonic()
            self._anchor_cycle = self._cycle_at(mono)
            self._anchor_posix = self._anchor_posix + (mono - self._anchor_mono)
            self._anchor_mono = mono
            self._timing = timing
        self._logger.debug("Set cps to %s", timing.cps)

    def _cycle_at(self, mono: float) -> float:
        return self._anchor_cycle + (mono - self._anchor_mono) * float(self._timing.cps)

    @override
    def now(self) -> float:
        with self._anchor_lock:
            return self._cycle_at(time.monotonic())

    @override
    def at(self, pos: Numeric) -> PosixTime:
        with self._anchor_lock:
            delta = (float(pos) - self._anchor_cycle) / float(self._timing.cps)
            return PosixTime(self._anchor_posix + delta)

    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running():
            return
        self._halt.clear()
        self._thread = Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        self._logger.info("Clock started at %s cps", self._timing.cps)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._halt.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
        self._thread = None
        self._logger.info("Clock stopped")

    def __enter__(self) -> ThreadClock:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def tick(self) -> None:
        """Notify every subscriber once with the current time.

        An error raised by one subscriber drops that subscriber's tick only.
        """
        now = self.now()
        for sub in self.subscribers():
            try:
                sub.notify(now)
            except Exception:
                self._logger.exception("Dropping tick at %s for %r", now, sub)

    def _run(self) -> None:
        self._logger.debug("Clock thread starting")
        while not self._halt.is_set():
            self.tick()
            if self._halt.wait(timeout=self._timing.resolution):
                break
        self._logger.debug("Clock thread stopping")
