"""MIDI rendering of stream notifications.

Turns gate notifications into timed note messages built with ``mido``. Sending
the messages at their timestamps is left to the sink.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, NewType, Optional, Tuple, override

from mido.frozen import FrozenMessage

from lazypat.messages import Consumer, GateOff, GateOn, StateChange
from lazypat.time import PosixTime

# =============================================================================
# MIDI Value Types
# =============================================================================

Note = NewType("Note", int)
"""MIDI note number (0-127)"""

Velocity = NewType("Velocity", int)
"""MIDI velocity (0-127)"""

Channel = NewType("Channel", int)
"""MIDI channel (0-15)"""

DEFAULT_VELOCITY = Velocity(64)
"""Default MIDI velocity when not specified"""

DEFAULT_CHANNEL = Channel(0)


def _assert_midi_range(value: int, max_value: int, name: str) -> None:
    """Assert that a value is in valid MIDI range."""
    if not (0 <= value <= max_value):
        raise ValueError(f"{name} {value} out of range (0-{max_value})")


def _to_int(value: Any, name: str) -> int:
    try:
        return int(round(value))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {name} value: {value!r}")


def mk_note(value: Any) -> Note:
    num = _to_int(value, "note")
    _assert_midi_range(num, 127, "Note")
    return Note(num)


def mk_velocity(value: Any) -> Velocity:
    num = _to_int(value, "velocity")
    _assert_midi_range(num, 127, "Velocity")
    return Velocity(num)


def mk_channel(value: Any) -> Channel:
    num = _to_int(value, "channel")
    _assert_midi_range(num, 15, "Channel")
    return Channel(num)


def msg_note_on(channel: Channel, note: Note, velocity: Velocity) -> FrozenMessage:
    """Create a note-on MIDI message."""
    return FrozenMessage(
        "note_on", channel=int(channel), note=int(note), velocity=int(velocity)
    )


def msg_note_off(channel: Channel, note: Note) -> FrozenMessage:
    """Create a note-off MIDI message."""
    return FrozenMessage("note_off", channel=int(channel), note=int(note), velocity=0)


@dataclass(frozen=True)
class TimedMessage:
    """A MIDI message with the time it should be sent at."""

    time: PosixTime
    """Timestamp when the message should be sent."""

    message: FrozenMessage
    """The frozen MIDI message."""


def _member(value: Any, index: int) -> Any:
    if isinstance(value, (list, tuple)):
        return value[index] if index < len(value) else value[-1]
    return value


class MidiConsumer(Consumer):
    """Consumer rendering sound objects as MIDI notes.

    Each sound object id of a gate-on becomes one note. For composite gate
    values (chords), sound object ``i`` of the gate-on takes member ``i`` of
    the note parameter.

    Args:
        sink: Receives every rendered message
        note_param: Parameter holding note numbers
        velocity_param: Parameter holding velocities
        channel_param: Parameter holding channels
    """

    def __init__(
        self,
        sink: Callable[[TimedMessage], None],
        note_param: str = "note",
        velocity_param: str = "velocity",
        channel_param: str = "channel",
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._sink = sink
        self._note_param = note_param
        self._velocity_param = velocity_param
        self._channel_param = channel_param
        self._sounding: Dict[int, Tuple[Channel, Note]] = {}

    def sounding(self) -> Dict[int, Tuple[Channel, Note]]:
        return dict(self._sounding)

    @override
    def gate_on(self, note: GateOn) -> None:
        if self._note_param not in note.state:
            raise ValueError(f"Gate on without a value for '{self._note_param}'")
        notes = note.state[self._note_param]
        velocities: Optional[Any] = note.state.get(self._velocity_param)
        channels: Optional[Any] = note.state.get(self._channel_param)
        rendered: List[TimedMessage] = []
        started: Dict[int, Tuple[Channel, Note]] = {}
        for i, so_id in enumerate(note.sound_object_ids):
            num = mk_note(_member(notes, i))
            vel = (
                mk_velocity(_member(velocities, i))
                if velocities is not None
                else DEFAULT_VELOCITY
            )
            chan = (
                mk_channel(_member(channels, i))
                if channels is not None
                else DEFAULT_CHANNEL
            )
            started[so_id] = (chan, num)
            rendered.append(TimedMessage(note.at, msg_note_on(chan, num, vel)))
        self._sounding.update(started)
        for msg in rendered:
            self._sink(msg)

    @override
    def gate_off(self, note: GateOff) -> None:
        for so_id in note.sound_object_ids:
            found = self._sounding.pop(so_id, None)
            if found is None:
                self._logger.warning("Gate off for unknown sound object %s", so_id)
                continue
            chan, num = found
            self._sink(TimedMessage(note.at, msg_note_off(chan, num)))

    @override
    def state_change(self, note: StateChange) -> None:
        self._logger.debug("Ignoring state change %s", dict(note.changed))
