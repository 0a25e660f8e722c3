# messyroute/detour/scoring.py
# -*- coding: utf-8 -*-
"""
Length proxies for candidate scoring.

A score function maps a point sequence to a non-negative int. The default,
`point_count`, is what the admission bound (10000) is calibrated against;
swapping in `geodesic_meters` means recalibrating that bound too.
"""

from __future__ import annotations

import math
from typing import Callable, Sequence

from messyroute.core.models import Coordinate

ScoreFn = Callable[[Sequence[Coordinate]], int]

EARTH_RADIUS_M = 6_371_008.8


def point_count(points: Sequence[Coordinate]) -> int:
    return len(points)


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters."""
    lat1, lon1, lat2, lon2 = map(math.radians, (a.lat, a.lon, b.lat, b.lon))
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def geodesic_meters(points: Sequence[Coordinate]) -> int:
    """Summed haversine length of the polyline, rounded to whole meters."""
    return int(round(sum(haversine_m(a, b) for a, b in zip(points, points[1:]))))
