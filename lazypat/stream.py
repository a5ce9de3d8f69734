"""Real-time scheduler turning bound patterns into gate and state notifications.

A stream binds parameter names to patterns. On every clock tick it advances
one enumerator per parameter, updates its parameter state, and tracks the
sound objects started by the gate parameter so each one is gated off exactly
once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from lazypat.clock import Clock
from lazypat.common import InvalidDurationError, Mutex, UnboundGateError
from lazypat.messages import Consumer, GateOff, GateOn, LogConsumer, StateChange
from lazypat.pat import EventCursor, Pattern
from lazypat.time import INF, Duration, Numeric, cycle_start, is_infinite, numeric_frac

__all__ = ["DEFAULT_LATENCY", "Stream"]

DEFAULT_LATENCY = Fraction(1, 20)
"""Look-ahead window in cycles used to schedule events ahead of time."""

_RESERVED_PARAMS = frozenset(["gate", "event_duration"])

_logger = logging.getLogger(__name__)


@dataclass
class PlayingSoundObject:
    """Sound objects started together and awaiting their gate-off."""

    sound_object_ids: Tuple[int, ...]
    duration: Duration
    """Cycle duration of the gate parameter that started them."""
    started_at: Any = None
    """Timestamp of their gate-on."""


@dataclass
class Enumerator:
    """Position within one parameter's endlessly repeated pattern."""

    cursor: EventCursor[Any]
    total_duration: Duration


@dataclass
class StreamState:
    """Mutable state of a stream, only accessed under the stream's lock."""

    source: Dict[str, Pattern[Any]] = field(default_factory=dict)
    gate: Optional[str] = None
    event_duration: Optional[Fraction] = None
    state: Dict[str, Any] = field(default_factory=dict)
    enumerators: Dict[str, Enumerator] = field(default_factory=dict)
    playing_sound_objects: Dict[Any, List[PlayingSoundObject]] = field(
        default_factory=dict
    )
    base_ts: Any = 0
    next_sound_object_id: int = 0
    playing: bool = False
    must_forward: bool = False
    changed_params: Set[str] = field(default_factory=set)
    horizon: Any = None
    """Latest time whose events were already emitted, in clock time."""


def _arity(value: Any) -> int:
    """Number of sound objects a gate value starts."""
    if value is None:
        return 0
    elif isinstance(value, (list, tuple, set, frozenset)):
        return len(value)
    else:
        return 1


def _check_event_duration(value: Numeric) -> Fraction:
    if is_infinite(value):
        raise InvalidDurationError("Event duration", value)
    frac = numeric_frac(value)
    if frac <= 0:
        raise InvalidDurationError("Event duration", value)
    return frac


class Stream:
    """Schedules the events of bound patterns against a clock.

    Every operation, including the tick handler, runs under one lock, so a
    tick never observes a half-applied binding.

    Args:
        clock: The clock driving this stream
        consumers: Receivers of the stream's notifications (logs by default)
        latency: Look-ahead window in cycles
    """

    def __init__(
        self,
        clock: Clock,
        consumers: Optional[Iterable[Consumer]] = None,
        latency: Numeric = DEFAULT_LATENCY,
    ):
        if numeric_frac(latency) <= 0:
            raise InvalidDurationError("Latency", latency)
        self._latency = latency
        self._clock = clock
        self._consumers: List[Consumer] = (
            list(consumers) if consumers is not None else [LogConsumer()]
        )
        self._mutex = Mutex(StreamState())

    # =========================================================================
    # Public surface
    # =========================================================================

    def set(
        self,
        event_duration: Optional[Numeric] = None,
        gate: Optional[str] = None,
        **patterns: Any,
    ) -> Stream:
        """Bind parameters to patterns and start playing.

        The whole source is replaced. ``gate`` and ``event_duration`` keep
        their previous values when not given.

        Returns:
            This stream
        """
        return self.bind(patterns, event_duration=event_duration, gate=gate)

    def bind(
        self,
        source: Mapping[str, Any],
        event_duration: Optional[Numeric] = None,
        gate: Optional[str] = None,
    ) -> Stream:
        """Like ``set`` but takes the parameters as an explicit mapping."""
        patterns: Dict[str, Pattern[Any]] = {}
        for name, val in source.items():
            if not isinstance(name, str) or not name:
                raise ValueError(f"Parameter names must be non-empty strings, got {name!r}")
            if name in _RESERVED_PARAMS:
                raise ValueError(f"Parameter name '{name}' is reserved")
            patterns[name] = Pattern.coerce(val)
        with self._mutex as st:
            new_gate = gate if gate is not None else st.gate
            new_dur = (
                _check_event_duration(event_duration)
                if event_duration is not None
                else st.event_duration
            )
            self._rebuild(st, patterns, new_gate, new_dur)
            self._play(st, reanchor=False)
        return self

    @property
    def event_duration(self) -> Optional[Fraction]:
        with self._mutex as st:
            return st.event_duration

    @event_duration.setter
    def event_duration(self, value: Optional[Numeric]) -> None:
        new_dur = _check_event_duration(value) if value is not None else None
        with self._mutex as st:
            self._rebuild(st, st.source, st.gate, new_dur)

    @property
    def gate(self) -> Optional[str]:
        with self._mutex as st:
            return st.gate

    @gate.setter
    def gate(self, value: Optional[str]) -> None:
        with self._mutex as st:
            self._rebuild(st, st.source, value, st.event_duration)

    @property
    def clock(self) -> Clock:
        return self._clock

    @clock.setter
    def clock(self, new_clock: Clock) -> None:
        with self._mutex as st:
            self._release_all(st)
            if st.playing:
                self._clock.unsubscribe(self)
                new_clock.subscribe(self)
            self._clock = new_clock
            st.horizon = None
            self._rebuild(st, st.source, st.gate, st.event_duration)

    @property
    def latency(self) -> Numeric:
        return self._latency

    @property
    def source(self) -> Dict[str, Pattern[Any]]:
        with self._mutex as st:
            return dict(st.source)

    @property
    def state(self) -> Dict[str, Any]:
        with self._mutex as st:
            return dict(st.state)

    @property
    def playing(self) -> bool:
        with self._mutex as st:
            return st.playing

    @property
    def stopped(self) -> bool:
        return not self.playing

    def add_consumer(self, consumer: Consumer) -> None:
        with self._mutex:
            self._consumers.append(consumer)

    def remove_consumer(self, consumer: Consumer) -> None:
        with self._mutex:
            self._consumers = [c for c in self._consumers if c is not consumer]

    def play(self) -> Stream:
        """Subscribe to the clock.

        A stream restarted after ``stop`` is re-anchored on the current time.
        """
        with self._mutex as st:
            self._play(st, reanchor=True)
        return self

    start = play

    def stop(self) -> Stream:
        """Unsubscribe from the clock and clear the parameter state.

        Sound objects still awaiting their gate-off are released immediately.
        No tick is processed once this returns.
        """
        with self._mutex as st:
            if st.playing:
                st.playing = False
                self._clock.unsubscribe(self)
                _logger.info("Stream stopped")
            self._release_all(st)
            st.state.clear()
            st.changed_params.clear()
        return self

    def notify(self, now: Any) -> None:
        """Process one clock tick.

        Errors raised while producing values propagate to the caller.
        """
        with self._mutex as st:
            if not st.playing:
                return
            st.changed_params.clear()

            if st.must_forward:
                self._forward(st, now)

            # Pending sound objects end even when nothing is bound
            gate_offs = self._collect_gate_offs(st, now)
            gate_ons = self._play_enumerators(st, now)
            st.horizon = now + self._latency

            snapshot = dict(st.state)
            for off in gate_offs:
                for consumer in self._consumers:
                    consumer.gate_off(off)
            for ids, at in gate_ons:
                on = GateOn(ids, at, snapshot)
                for consumer in self._consumers:
                    consumer.gate_on(on)
            if st.changed_params:
                changed = {
                    k: v for k, v in st.state.items() if k in st.changed_params
                }
                note = StateChange(changed, now)
                for consumer in self._consumers:
                    consumer.state_change(note)

    def describe(self) -> str:
        st = self._mutex.peek()
        status = "playing" if st.playing else "stopped"
        params = ", ".join(st.source)
        return (
            f"<Stream 0x{id(self):x} clock={self._clock!r} {status}"
            f" params=[{params}] gate={st.gate}>"
        )

    def __repr__(self) -> str:
        try:
            return self.describe()
        except Exception:
            _logger.exception("Failed to describe stream")
            return f"<Stream 0x{id(self):x}>"

    # =========================================================================
    # Internals, all called with the lock held
    # =========================================================================

    def _play(self, st: StreamState, reanchor: bool) -> None:
        if st.playing:
            return
        if reanchor and st.source:
            self._rebuild(st, st.source, st.gate, st.event_duration)
        st.playing = True
        self._clock.subscribe(self)
        _logger.info("Stream playing")

    def _rebuild(
        self,
        st: StreamState,
        source: Dict[str, Pattern[Any]],
        gate: Optional[str],
        event_duration: Optional[Fraction],
    ) -> None:
        if gate is not None and source and gate not in source:
            raise UnboundGateError(gate, source.keys())
        enumerators: Dict[str, Enumerator] = {}
        for name, pat in source.items():
            resampled = pat.p(event_duration)
            total = resampled.total_duration()
            if not is_infinite(total) and total <= 0:
                raise InvalidDurationError(f"Cycle length of '{name}'", total)
            enumerators[name] = Enumerator(resampled.seq(INF).cursor(), total)

        now = self._clock.now()
        st.playing_sound_objects = self._reanchor(st, now)
        st.source = dict(source)
        st.gate = gate
        st.event_duration = event_duration
        st.base_ts = now
        st.must_forward = True
        st.enumerators = enumerators
        _logger.debug(
            "Rebuilt stream at %s with params %s (gate %s, event duration %s)",
            now,
            list(source),
            gate,
            event_duration,
        )

    def _reanchor(
        self, st: StreamState, now: Any
    ) -> Dict[Any, List[PlayingSoundObject]]:
        """Express pending end offsets relative to the cycles of a new anchor.

        The absolute time at which each sound object ends is unchanged.
        """
        moved: Dict[Any, List[PlayingSoundObject]] = {}
        for end_pos, entries in st.playing_sound_objects.items():
            for entry in entries:
                old_start = cycle_start(st.base_ts, entry.duration)
                new_start = cycle_start(now, entry.duration)
                new_end = old_start + end_pos - new_start
                moved.setdefault(new_end, []).append(entry)
        return moved

    def _forward(self, st: StreamState, now: Any) -> None:
        """Silently skip events scheduled before ``now``.

        Events the previous tick already emitted ahead of time are skipped too.
        """

        def is_past(start: Any) -> bool:
            if start < now:
                return True
            return st.horizon is not None and start <= st.horizon

        for name, enum in st.enumerators.items():
            start_ts = cycle_start(st.base_ts, enum.total_duration)
            skipped = 0
            ev = enum.cursor.peek()
            while ev is not None and is_past(start_ts + ev.start):
                enum.cursor.advance()
                skipped += 1
                ev = enum.cursor.peek()
            if skipped:
                _logger.debug("Skipped %d events of :%s", skipped, name)
        st.must_forward = False

    def _collect_gate_offs(self, st: StreamState, now: Any) -> List[GateOff]:
        # Each entry's end offset is relative to its own cycle start
        due: List[Tuple[Any, Tuple[int, ...]]] = []
        for end_pos in list(st.playing_sound_objects):
            remaining: List[PlayingSoundObject] = []
            for entry in st.playing_sound_objects[end_pos]:
                start_ts = cycle_start(st.base_ts, entry.duration)
                if now - start_ts + self._latency >= end_pos:
                    due.append((start_ts + end_pos, entry.sound_object_ids))
                else:
                    remaining.append(entry)
            if remaining:
                st.playing_sound_objects[end_pos] = remaining
            else:
                del st.playing_sound_objects[end_pos]
        due.sort(key=lambda item: item[0])
        return [GateOff(ids, self._clock.at(end_ts)) for end_ts, ids in due]

    def _play_enumerators(
        self, st: StreamState, now: Any
    ) -> List[Tuple[Tuple[int, ...], Any]]:
        gate_ons: List[Tuple[Tuple[int, ...], Any]] = []
        for name, enum in st.enumerators.items():
            start_ts = cycle_start(st.base_ts, enum.total_duration)
            cur_pos = now - start_ts

            ev = enum.cursor.peek()
            if ev is None or cur_pos + self._latency < ev.start:
                continue

            self._update_state(st, name, ev.value)

            if name == st.gate:
                arity = _arity(ev.value)
                if arity > 0:
                    first_id = st.next_sound_object_id
                    ids = tuple(range(first_id, first_id + arity))
                    st.next_sound_object_id = first_id + arity
                    at = self._clock.at(start_ts + ev.start)
                    gate_ons.append((ids, at))
                    st.playing_sound_objects.setdefault(ev.end, []).append(
                        PlayingSoundObject(ids, enum.total_duration, at)
                    )

            enum.cursor.advance()
        return gate_ons

    def _update_state(self, st: StreamState, name: str, value: Any) -> None:
        if name not in st.state or st.state[name] != value:
            _logger.debug("Update state of :%s: %s", name, value)
            st.changed_params.add(name)
            st.state[name] = value

    def _release_all(self, st: StreamState) -> None:
        """Gate off every pending sound object now.

        A sound object scheduled to start after now is released at its start.
        """
        if not st.playing_sound_objects:
            return
        at = self._clock.at(self._clock.now())
        offs: List[GateOff] = []
        for entries in st.playing_sound_objects.values():
            for entry in entries:
                off_at = at
                if entry.started_at is not None and entry.started_at > at:
                    off_at = entry.started_at
                offs.append(GateOff(entry.sound_object_ids, off_at))
        st.playing_sound_objects.clear()
        offs.sort(key=lambda off: off.at)
        for off in offs:
            for consumer in self._consumers:
                consumer.gate_off(off)
