"""Environment-driven configuration and startup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable, Optional

from lazypat.clock import Clock, ThreadClock, Timing
from lazypat.messages import Consumer
from lazypat.stream import Stream
from lazypat.time import Cps, numeric_frac


@dataclass(frozen=True)
class Config:
    """Startup settings, read from ``LAZYPAT_*`` environment variables."""

    log_path: str
    log_level: str
    bpm: int
    bpc: int
    latency: Fraction
    resolution: float

    @property
    def cps(self) -> Cps:
        return Cps(Fraction(self.bpm, self.bpc * 60))

    @staticmethod
    def from_env(
        log_path: Optional[str] = None,
        log_level: Optional[str] = None,
        bpm: Optional[int] = None,
        bpc: Optional[int] = None,
        latency: Optional[float] = None,
        resolution: Optional[float] = None,
    ) -> Config:
        """Build a config, preferring explicit arguments over the environment."""
        log_path = log_path or os.environ.get("LAZYPAT_LOG_PATH", "/tmp/lazypat.log")
        log_level = log_level or os.environ.get("LAZYPAT_LOG_LEVEL", "INFO")
        # Explicit zeros are kept so they fail validation below
        if bpm is None:
            bpm = int(os.environ.get("LAZYPAT_BPM", "120"))
        if bpc is None:
            bpc = int(os.environ.get("LAZYPAT_BPC", "4"))
        if latency is None:
            latency = float(os.environ.get("LAZYPAT_LATENCY", "0.05"))
        if resolution is None:
            resolution = float(os.environ.get("LAZYPAT_RESOLUTION", "0.01"))
        if bpm <= 0 or bpc <= 0:
            raise ValueError(f"Tempo must be positive, got {bpm} bpm and {bpc} bpc")
        if latency <= 0 or resolution <= 0:
            raise ValueError(
                f"Latency and resolution must be positive, got {latency} and {resolution}"
            )
        if not hasattr(logging, log_level.upper()):
            raise ValueError(f"Unknown log level: {log_level}")
        return Config(
            log_path=log_path,
            log_level=log_level.upper(),
            bpm=bpm,
            bpc=bpc,
            latency=numeric_frac(latency),
            resolution=resolution,
        )

    def timing(self) -> Timing:
        return Timing.initial(cps=self.cps, resolution=self.resolution)

    def stream(
        self, clock: Clock, consumers: Optional[Iterable[Consumer]] = None
    ) -> Stream:
        return Stream(clock, consumers=consumers, latency=self.latency)


def boot(config: Optional[Config] = None) -> ThreadClock:
    """Configure logging and start a clock.

    Returns:
        A running clock; stop it with ``clock.stop()``
    """
    config = config if config is not None else Config.from_env()
    logging.basicConfig(
        filename=config.log_path,
        filemode="w",
        level=getattr(logging, config.log_level),
    )
    clock = ThreadClock(config.timing())
    clock.start()
    return clock
