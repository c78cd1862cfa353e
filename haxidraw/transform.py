"""Logical to machine coordinate mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from .config import ViewportConfig, Workspace
from .errors import InvalidTransform
from .geometry import XY


@dataclass(frozen=True)
class ScaleRange:
    """Linear map of one logical axis range onto one physical axis range."""

    logical: Tuple[float, float]
    physical: Tuple[float, float]

    def __post_init__(self) -> None:
        for name in ("logical", "physical"):
            lo, hi = getattr(self, name)
            if not lo < hi:
                raise InvalidTransform(f"{name} range must satisfy min < max, got [{lo}, {hi}]")

    def apply(self, value: float) -> float:
        l0, l1 = self.logical
        p0, p1 = self.physical
        return p0 + (value - l0) * (p1 - p0) / (l1 - l0)


@dataclass(frozen=True)
class CoordinateTransform:
    scale_x: ScaleRange
    scale_y: ScaleRange

    @staticmethod
    def from_ranges(
        scale_x: Sequence[float],
        scale_y: Sequence[float],
        workspace: Workspace,
    ) -> "CoordinateTransform":
        """Map ``scale_x``/``scale_y`` logical ranges onto the workspace."""

        try:
            x0, x1 = (float(v) for v in scale_x)
            y0, y1 = (float(v) for v in scale_y)
        except (TypeError, ValueError) as exc:
            raise InvalidTransform("scale ranges must be [min, max] pairs") from exc
        return CoordinateTransform(
            scale_x=ScaleRange((x0, x1), (0.0, float(workspace.width_mm))),
            scale_y=ScaleRange((y0, y1), (0.0, float(workspace.height_mm))),
        )

    def apply(self, point: XY) -> XY:
        x, y = point
        return self.scale_x.apply(x), self.scale_y.apply(y)


def to_physical(point: XY, transform: CoordinateTransform) -> XY:
    """Map a logical point to machine space. Points outside the range extrapolate."""

    return transform.apply(point)


class Viewport:
    """Holds the current transform; reconfiguring swaps the whole object."""

    def __init__(self, workspace: Workspace, config: ViewportConfig | None = None) -> None:
        self.workspace = workspace
        config = config or ViewportConfig()
        self._transform = CoordinateTransform.from_ranges(config.scale_x, config.scale_y, workspace)

    def configure(self, scale_x: Sequence[float], scale_y: Sequence[float]) -> CoordinateTransform:
        transform = CoordinateTransform.from_ranges(scale_x, scale_y, self.workspace)
        self._transform = transform
        return transform

    def snapshot(self) -> CoordinateTransform:
        return self._transform

    def ranges(self) -> dict:
        t = self._transform
        return {"scale_x": list(t.scale_x.logical), "scale_y": list(t.scale_y.logical)}


__all__ = ["ScaleRange", "CoordinateTransform", "Viewport", "to_physical"]
