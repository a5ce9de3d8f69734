from fractions import Fraction

import pytest

from lazypat.boot import Config, boot
from lazypat.clock import ManualClock
from lazypat.messages import LogConsumer, RecordingConsumer


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ["LOG_PATH", "LOG_LEVEL", "BPM", "BPC", "LATENCY", "RESOLUTION"]:
        monkeypatch.delenv(f"LAZYPAT_{var}", raising=False)
    config = Config.from_env()
    assert config.log_path == "/tmp/lazypat.log"
    assert config.log_level == "INFO"
    assert config.cps == Fraction(1, 2)
    assert config.latency == Fraction(1, 20)
    assert config.resolution == pytest.approx(0.01)


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LAZYPAT_BPM", "90")
    monkeypatch.setenv("LAZYPAT_BPC", "3")
    monkeypatch.setenv("LAZYPAT_LOG_LEVEL", "debug")
    monkeypatch.setenv("LAZYPAT_LATENCY", "0.1")
    config = Config.from_env()
    assert config.cps == Fraction(1, 2)
    assert config.log_level == "DEBUG"
    assert config.latency == Fraction(1, 10)


def test_config_arguments_override_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LAZYPAT_BPM", "90")
    config = Config.from_env(bpm=240, bpc=4, log_path="/tmp/other.log")
    assert config.bpm == 240
    assert config.cps == 1
    assert config.log_path == "/tmp/other.log"


def test_config_rejects_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LAZYPAT_BPM", "-10")
    with pytest.raises(ValueError, match="Tempo must be positive"):
        Config.from_env()
    monkeypatch.delenv("LAZYPAT_BPM")
    with pytest.raises(ValueError, match="Unknown log level"):
        Config.from_env(log_level="LOUD")


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"bpm": 0}, "Tempo must be positive"),
        ({"bpc": 0}, "Tempo must be positive"),
        ({"latency": 0}, "Latency and resolution must be positive"),
        ({"resolution": 0.0}, "Latency and resolution must be positive"),
    ],
)
def test_config_keeps_explicit_zero(
    monkeypatch: pytest.MonkeyPatch, kwargs: dict, message: str
) -> None:
    """Test an explicit zero is validated instead of replaced by the environment."""
    monkeypatch.setenv("LAZYPAT_BPM", "90")
    monkeypatch.setenv("LAZYPAT_BPC", "3")
    monkeypatch.setenv("LAZYPAT_LATENCY", "0.1")
    monkeypatch.setenv("LAZYPAT_RESOLUTION", "0.02")
    with pytest.raises(ValueError, match=message):
        Config.from_env(**kwargs)


def test_config_builds_stream() -> None:
    config = Config.from_env(latency=0.2)
    clock = ManualClock()
    stream = config.stream(clock)
    assert stream.latency == Fraction(1, 5)
    assert stream.clock is clock
    assert isinstance(stream._consumers[0], LogConsumer)
    rec = RecordingConsumer()
    assert config.stream(clock, consumers=[rec])._consumers == [rec]


def test_config_timing() -> None:
    timing = Config.from_env(bpm=60, bpc=1, resolution=0.005).timing()
    assert timing.cps == 1
    assert timing.resolution == pytest.approx(0.005)


def test_boot_starts_clock(tmp_path) -> None:
    config = Config.from_env(log_path=str(tmp_path / "lazypat.log"), bpm=120, bpc=4)
    clock = boot(config)
    try:
        assert clock.running()
        assert clock.timing.cps == Fraction(1, 2)
    finally:
        clock.stop()
    assert not clock.running()
