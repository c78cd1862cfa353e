"""Motion commands and their G-code line encoding.

:func:`build_commands` walks a :class:`~haxidraw.geometry.Drawing` and emits
the ordered command list that is streamed to the machine.  The order is the
contract with the device: it is never rearranged or deduplicated, and a
single-point draw segment still produces a pen-down/pen-up dot.

:class:`GcodeEncoder` renders commands as GRBL lines:

==============  ===========================================
``PenUp``       ``M3 S<servo.up>``
``PenDown``     ``M3 S<servo.down>``
``MoveTo``      ``G0 X.. Y.. F<travel>`` while the pen is up,
                ``G1 X.. Y.. F<draw>`` while it is down
==============  ===========================================
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from .config import PlotterSettings
from .geometry import Drawing
from .transform import CoordinateTransform, to_physical


@dataclass(frozen=True)
class MoveTo:
    x: float
    y: float


@dataclass(frozen=True)
class PenDown:
    pass


@dataclass(frozen=True)
class PenUp:
    pass


MotionCommand = Union[MoveTo, PenDown, PenUp]


def build_commands(drawing: Drawing, transform: CoordinateTransform) -> List[MotionCommand]:
    """Translate ``drawing`` into machine-space motion commands."""

    commands: List[MotionCommand] = []
    pen_up: Optional[bool] = None  # unknown until the first lift

    for seg in drawing.segments:
        if not seg.pts:
            continue
        if pen_up is not True:
            commands.append(PenUp())
            pen_up = True
        first, *rest = [to_physical(p, transform) for p in seg.pts]
        commands.append(MoveTo(*first))
        if seg.draw:
            commands.append(PenDown())
            commands.extend(MoveTo(x, y) for x, y in rest)
            commands.append(PenUp())
        else:
            commands.extend(MoveTo(x, y) for x, y in rest)
    return commands


class GcodeEncoder:
    """Stateful encoder; the pen position selects G0 or G1 for moves."""

    def __init__(self, settings: PlotterSettings) -> None:
        self.settings = settings
        self._pen_down = False

    @property
    def pen_down(self) -> bool:
        return self._pen_down

    def reset(self) -> None:
        self._pen_down = False

    def encode(self, command: MotionCommand) -> str:
        if isinstance(command, PenUp):
            self._pen_down = False
            return f"M3 S{self.settings.servo.to_pwm(1.0)}"
        if isinstance(command, PenDown):
            self._pen_down = True
            return f"M3 S{self.settings.servo.to_pwm(0.0)}"
        if isinstance(command, MoveTo):
            if self._pen_down:
                return f"G1 X{command.x:.3f} Y{command.y:.3f} F{self.settings.draw_feed}"
            return f"G0 X{command.x:.3f} Y{command.y:.3f} F{self.settings.travel_feed}"
        raise TypeError(f"Unsupported motion command: {command!r}")


__all__ = ["MoveTo", "PenDown", "PenUp", "MotionCommand", "build_commands", "GcodeEncoder"]
