"""Example script that generates a spiral drawing and runs it on the machine."""
from __future__ import annotations

import math
import requests

from haxidraw.geometry import Drawing


def build_spiral(turns: int = 10, radius: float = 4.5, steps: int = 800) -> Drawing:
    pts = []
    for i in range(steps):
        t = i / (steps - 1)
        angle = turns * 2 * math.pi * t
        r = radius * t
        pts.append((r * math.cos(angle), r * math.sin(angle)))
    return Drawing.from_polylines([pts])


def main() -> None:
    drawing = build_spiral()
    base = "http://localhost:8000"
    res = requests.post(f"{base}/api/connect", json={}, timeout=30)
    res.raise_for_status()
    res = requests.post(f"{base}/api/drawing/run", json=drawing.to_dict(), timeout=5)
    res.raise_for_status()
    print(res.json())


if __name__ == "__main__":
    main()
