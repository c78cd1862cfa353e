"""Configuration models for the Haxidraw machine-drive pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

HAXIDRAW_VENDOR_ID = 11914  # 0x2E8A


@dataclass
class Workspace:
    """Physical dimensions of the plotting surface."""

    width_mm: float = 300.0
    height_mm: float = 245.0


@dataclass
class ServoCalibration:
    """Servo calibration expressed as raw PWM values."""

    up: int = 40
    down: int = 90

    def clamp(self, value: float) -> float:
        return max(0.0, min(1.0, value))

    def to_pwm(self, value: float) -> int:
        value = self.clamp(value)
        return int(round(self.down + value * (self.up - self.down)))


@dataclass
class ViewportConfig:
    """Logical drawing ranges shown by the editor preview."""

    scale_x: Tuple[float, float] = (-5.0, 5.0)
    scale_y: Tuple[float, float] = (-5.0, 5.0)


@dataclass
class PlotterSettings:
    """Aggregate settings for the serial link and the workspace."""

    baudrate: int = 115200
    read_timeout: float = 1.0
    handshake_delay: float = 2.0
    ack_timeout: float = 30.0
    vendor_id: int = HAXIDRAW_VENDOR_ID
    poll_interval: float = 1.0
    workspace: Workspace = field(default_factory=Workspace)
    servo: ServoCalibration = field(default_factory=ServoCalibration)
    viewport: ViewportConfig = field(default_factory=ViewportConfig)
    travel_feed: int = 3000
    draw_feed: int = 3000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PlotterSettings":
        """Build settings, honouring ``HAXIDRAW_*`` overrides."""

        env = os.environ if environ is None else environ
        settings = cls()
        if "HAXIDRAW_BAUDRATE" in env:
            settings.baudrate = int(env["HAXIDRAW_BAUDRATE"])
        if "HAXIDRAW_READ_TIMEOUT" in env:
            settings.read_timeout = float(env["HAXIDRAW_READ_TIMEOUT"])
        if "HAXIDRAW_VENDOR_ID" in env:
            settings.vendor_id = int(env["HAXIDRAW_VENDOR_ID"], 0)
        if "HAXIDRAW_TRAVEL_FEED" in env:
            settings.travel_feed = int(env["HAXIDRAW_TRAVEL_FEED"])
        if "HAXIDRAW_DRAW_FEED" in env:
            settings.draw_feed = int(env["HAXIDRAW_DRAW_FEED"])
        if "HAXIDRAW_WORKSPACE" in env:
            width, height = env["HAXIDRAW_WORKSPACE"].lower().split("x", 1)
            settings.workspace = Workspace(float(width), float(height))
        return settings
