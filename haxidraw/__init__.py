"""Top-level package for the Haxidraw machine-drive pipeline.

This package turns drawings produced by the editor into motion commands,
streams them to a GRBL based plotter over serial, and keeps the connection
state and the user-visible status in step.
"""

from .commands import MoveTo, PenDown, PenUp, build_commands
from .config import PlotterSettings
from .connection import ConnectionState, DeviceConnection
from .driver import DriveHandle, DriveResult, MachineDriver
from .geometry import Drawing, Segment, XY
from .session import PlotterSession, Status
from .supervisor import ConnectionSupervisor
from .transform import CoordinateTransform, ScaleRange, Viewport, to_physical

__all__ = [
    "MoveTo",
    "PenDown",
    "PenUp",
    "build_commands",
    "PlotterSettings",
    "ConnectionState",
    "DeviceConnection",
    "DriveHandle",
    "DriveResult",
    "MachineDriver",
    "Drawing",
    "Segment",
    "XY",
    "PlotterSession",
    "Status",
    "ConnectionSupervisor",
    "CoordinateTransform",
    "ScaleRange",
    "Viewport",
    "to_physical",
]
