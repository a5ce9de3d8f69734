"""Lazy pattern algebra and a clock-driven event scheduler."""

from lazypat.clock import Clock, ManualClock, ThreadClock, Timing
from lazypat.combinators import geom, rand, series, shuf, sin, sin1, xrand
from lazypat.common import (
    EmptyListError,
    InvalidDurationError,
    LazypatError,
    UnboundGateError,
)
from lazypat.ev import Event
from lazypat.messages import (
    Consumer,
    FanoutConsumer,
    GateOff,
    GateOn,
    LogConsumer,
    RecordingConsumer,
    StateChange,
)
from lazypat.pat import Pattern
from lazypat.stream import Stream
from lazypat.time import INF

__all__ = [
    "INF",
    "Clock",
    "ManualClock",
    "ThreadClock",
    "Timing",
    "Event",
    "Pattern",
    "Stream",
    "Consumer",
    "FanoutConsumer",
    "LogConsumer",
    "RecordingConsumer",
    "GateOn",
    "GateOff",
    "StateChange",
    "EmptyListError",
    "InvalidDurationError",
    "LazypatError",
    "UnboundGateError",
    "series",
    "geom",
    "rand",
    "xrand",
    "shuf",
    "sin",
    "sin1",
]
