"""Notifications emitted by streams and the consumers that receive them."""

from __future__ import annotations

import logging
from abc import ABCMeta, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Tuple, Union, override

# =============================================================================
# Notification Types
# =============================================================================


@dataclass(frozen=True)
class GateOn:
    """New sound objects start at ``at``."""

    sound_object_ids: Tuple[int, ...]
    at: Any
    state: Mapping[str, Any] = field(default_factory=dict, compare=False)
    """Full parameter snapshot after the tick that produced this notification."""


@dataclass(frozen=True)
class GateOff:
    """Sound objects end at ``at``."""

    sound_object_ids: Tuple[int, ...]
    at: Any


@dataclass(frozen=True)
class StateChange:
    """Parameters whose value changed during the tick at ``now``."""

    changed: Mapping[str, Any]
    now: Any


type Notification = Union[GateOn, GateOff, StateChange]


# =============================================================================
# Consumers
# =============================================================================


class Consumer(metaclass=ABCMeta):
    """Receives the notifications of a stream.

    Methods are invoked synchronously from the stream's tick while the stream
    is locked, so implementations must not call back into the stream.
    """

    @abstractmethod
    def gate_on(self, note: GateOn) -> None:
        raise NotImplementedError

    @abstractmethod
    def gate_off(self, note: GateOff) -> None:
        raise NotImplementedError

    @abstractmethod
    def state_change(self, note: StateChange) -> None:
        raise NotImplementedError


class LogConsumer(Consumer):
    """Consumer that writes every notification to a logger."""

    def __init__(self, name: str = "lazypat.consumer") -> None:
        self._logger = logging.getLogger(name)

    @override
    def gate_on(self, note: GateOn) -> None:
        self._logger.info("Gate on change: %s at %s", list(note.sound_object_ids), note.at)

    @override
    def gate_off(self, note: GateOff) -> None:
        self._logger.info("Gate off change: %s at %s", list(note.sound_object_ids), note.at)

    @override
    def state_change(self, note: StateChange) -> None:
        self._logger.info("State change: %s", dict(note.changed))


class RecordingConsumer(Consumer):
    """Consumer that keeps every notification in arrival order."""

    def __init__(self) -> None:
        self.notes: List[Notification] = []

    @override
    def gate_on(self, note: GateOn) -> None:
        self.notes.append(note)

    @override
    def gate_off(self, note: GateOff) -> None:
        self.notes.append(note)

    @override
    def state_change(self, note: StateChange) -> None:
        self.notes.append(note)

    def gate_ons(self) -> List[GateOn]:
        return [n for n in self.notes if isinstance(n, GateOn)]

    def gate_offs(self) -> List[GateOff]:
        return [n for n in self.notes if isinstance(n, GateOff)]

    def state_changes(self) -> List[StateChange]:
        return [n for n in self.notes if isinstance(n, StateChange)]

    def clear(self) -> None:
        self.notes.clear()


class FanoutConsumer(Consumer):
    """Consumer forwarding every notification to several consumers in order."""

    def __init__(self, consumers: Iterable[Consumer]) -> None:
        self._consumers = list(consumers)

    @override
    def gate_on(self, note: GateOn) -> None:
        for consumer in self._consumers:
            consumer.gate_on(note)

    @override
    def gate_off(self, note: GateOff) -> None:
        for consumer in self._consumers:
            consumer.gate_off(note)

    @override
    def state_change(self, note: StateChange) -> None:
        for consumer in self._consumers:
            consumer.state_change(note)
