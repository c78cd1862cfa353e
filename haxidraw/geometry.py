"""Drawing model handed over by the evaluator.

A :class:`Drawing` is plain, immutable data: an ordered tuple of
:class:`Segment` objects, each an ordered tuple of logical points.  The
evaluator builds a fresh drawing on every run; nothing in this package
mutates one after construction.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import InvalidDrawing

XY = Tuple[float, float]


def _point(raw: Any) -> XY:
    try:
        x, y = raw
        return (float(x), float(y))
    except (TypeError, ValueError) as exc:
        raise InvalidDrawing(f"Invalid point: {raw!r}") from exc


@dataclass(frozen=True)
class Segment:
    """Ordered logical points, drawn with the pen down or travelled with it up."""

    pts: Tuple[XY, ...] = ()
    draw: bool = True

    @staticmethod
    def of(points: Iterable[Any], draw: bool = True) -> "Segment":
        return Segment(pts=tuple(_point(p) for p in points), draw=bool(draw))

    def __len__(self) -> int:
        return len(self.pts)


@dataclass(frozen=True)
class Drawing:
    """Ordered collection of segments."""

    segments: Tuple[Segment, ...] = ()

    @staticmethod
    def from_polylines(polylines: Iterable[Iterable[Any]]) -> "Drawing":
        """Build a drawing where every polyline is drawn with the pen down."""

        return Drawing(segments=tuple(Segment.of(pl) for pl in polylines))

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Drawing":
        if not isinstance(data, dict):
            raise InvalidDrawing("Drawing data must be an object")
        raw_segments = data.get("segments", [])
        if not isinstance(raw_segments, list):
            raise InvalidDrawing("'segments' must be a list")
        segments: List[Segment] = []
        for item in raw_segments:
            if not isinstance(item, dict):
                raise InvalidDrawing(f"Invalid segment: {item!r}")
            segments.append(Segment.of(item.get("points", []), draw=item.get("draw", True)))
        return Drawing(segments=tuple(segments))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segments": [
                {"points": [[x, y] for x, y in seg.pts], "draw": seg.draw}
                for seg in self.segments
            ]
        }

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def point_count(self) -> int:
        return sum(len(seg) for seg in self.segments)

    def bounding_box(self) -> Optional[Tuple[XY, XY]]:
        pts: Sequence[XY] = [p for seg in self.segments for p in seg.pts]
        if not pts:
            return None
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return (min(xs), min(ys)), (max(xs), max(ys))


__all__ = ["XY", "Segment", "Drawing"]
