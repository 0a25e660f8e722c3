# messyroute/detour/jitter.py
# -*- coding: utf-8 -*-
"""
Geometry jitter generator: the provider-free fallback path.

Always five points: start, two nudges away from start, one nudge away from
end, end. Deterministic and pure, so the map always has something to draw.
"""

from __future__ import annotations

from typing import List, Tuple

from messyroute.core.models import Coordinate

# (d_lat, d_lon) offsets in degrees
_START_OFFSETS: Tuple[Tuple[float, float], ...] = ((0.01, -0.01), (0.005, 0.015))
_END_OFFSET: Tuple[float, float] = (-0.01, 0.01)


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _nudge(c: Coordinate, d_lat: float, d_lon: float) -> Coordinate:
    # near the poles / antimeridian the nudge is clamped rather than wrapped
    return Coordinate(
          _clamp(c.lat + d_lat, -90.0, 90.0)
        , _clamp(c.lon + d_lon, -180.0, 180.0)
    )


def jitter_path(start: Coordinate, end: Coordinate) -> List[Coordinate]:
    """Return the fixed-shape 5-point path from `start` to `end`."""
    return [
          start
        , *(_nudge(start, d_lat, d_lon) for d_lat, d_lon in _START_OFFSETS)
        , _nudge(end, *_END_OFFSET)
        , end
    ]
