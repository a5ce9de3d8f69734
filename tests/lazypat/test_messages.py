import logging

import pytest

from lazypat.messages import (
    FanoutConsumer,
    GateOff,
    GateOn,
    LogConsumer,
    RecordingConsumer,
    StateChange,
)


def test_gate_on_equality_ignores_state() -> None:
    assert GateOn((0,), 1, {"n": 1}) == GateOn((0,), 1)
    assert GateOn((0,), 1) != GateOn((1,), 1)


def test_recording_consumer() -> None:
    rec = RecordingConsumer()
    rec.gate_on(GateOn((0,), 0))
    rec.state_change(StateChange({"n": 1}, 0))
    rec.gate_off(GateOff((0,), 1))
    assert rec.gate_ons() == [GateOn((0,), 0)]
    assert rec.gate_offs() == [GateOff((0,), 1)]
    assert rec.state_changes() == [StateChange({"n": 1}, 0)]
    assert len(rec.notes) == 3
    rec.clear()
    assert rec.notes == []


def test_fanout_consumer() -> None:
    """Test every notification reaches every consumer in order."""
    first = RecordingConsumer()
    second = RecordingConsumer()
    fanout = FanoutConsumer([first, second])
    notes = [GateOn((0,), 0), StateChange({"n": 1}, 0), GateOff((0,), 1)]
    fanout.gate_on(notes[0])
    fanout.state_change(notes[1])
    fanout.gate_off(notes[2])
    assert first.notes == notes
    assert second.notes == notes


def test_log_consumer(caplog: pytest.LogCaptureFixture) -> None:
    consumer = LogConsumer()
    with caplog.at_level(logging.INFO, logger="lazypat.consumer"):
        consumer.gate_on(GateOn((0, 1), 2))
        consumer.gate_off(GateOff((0, 1), 3))
        consumer.state_change(StateChange({"n": 1}, 2))
    assert caplog.messages == [
        "Gate on change: [0, 1] at 2",
        "Gate off change: [0, 1] at 3",
        "State change: {'n': 1}",
    ]
