# messyroute/core/models.py
# -*- coding: utf-8 -*-

"""
Core domain models (pure dataclasses).

    - Coordinate: an immutable (lat, lon) pair
    - AnchorNode: a named stitching point from the anchor catalog
    - RouteSegment: decoded output of one directions call
    - CandidateRoute: start + segment + end, scored by a length proxy
    - SelectionResult: the route handed to the rendering layer
    - FetchOutcome: tagged success/failure of one anchor-pair fetch

No HTTP, no logging configuration, no threading in here. Safe to import from
anywhere.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from messyroute.core.types import HasLatLon, LatLonPair, LonLatPair

SOURCE_PROVIDER = "provider"
SOURCE_JITTER = "jitter"


# ────────────────────────────────────────────────────────────────────────────────
# Coordinate
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Coordinate:
    """
    A geographic coordinate in decimal degrees.

    Attributes
    ----------
    lat : float
        Latitude, within [-90, 90].
    lon : float
        Longitude, within [-180, 180].

    Raises
    ------
    ValueError
        If either value is not finite or is out of range.
    """

    lat: float
    lon: float

    def __post_init__(self) -> None:
        lat = float(self.lat)
        lon = float(self.lon)
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ValueError(f"Coordinate must be finite, got ({self.lat!r}, {self.lon!r})")
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"Latitude out of range [-90, 90]: {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"Longitude out of range [-180, 180]: {lon}")
        # normalize ints/strings-as-numbers to float without breaking frozen
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lon", lon)

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> "Coordinate":
        """Build from a (lat, lon) sequence."""
        if isinstance(pair, (str, bytes)) or len(pair) != 2:
            raise ValueError(f"Expected a (lat, lon) pair, got {pair!r}")
        return cls(float(pair[0]), float(pair[1]))

    @classmethod
    def coerce(cls, value: Union["Coordinate", HasLatLon, Sequence[float]]) -> "Coordinate":
        """Accept a Coordinate, any object with lat/lon, or a (lat, lon) pair."""
        if isinstance(value, Coordinate):
            return value
        if isinstance(value, HasLatLon):
            return cls(float(value.lat), float(value.lon))
        return cls.from_pair(value)

    def as_latlon(self) -> LatLonPair:
        return (self.lat, self.lon)

    def as_lonlat(self) -> LonLatPair:
        """Provider (GeoJSON / ORS) order: longitude first."""
        return [self.lon, self.lat]


# ────────────────────────────────────────────────────────────────────────────────
# Anchors
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AnchorNode:
    """
    A fixed named point used only as an intermediate stitching location.

    Attributes
    ----------
    name : str
        Non-empty identifier, unique within a catalog.
    coords : Coordinate
        Position of the anchor.
    """

    name: str
    coords: Coordinate

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("AnchorNode name must be a non-empty string")


# ────────────────────────────────────────────────────────────────────────────────
# Provider output
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RouteSegment:
    """
    Road-following geometry for one start→end directions call.

    Attributes
    ----------
    points : tuple[Coordinate, ...]
        Decoded polyline, at least two points.
    instructions : tuple[str, ...]
        Step instructions of the first leg; empty when the provider omits them.
    distance_m : float | None
        Provider-reported route distance, when present.
    profile : str | None
        Routing profile that produced the segment.
    """

    points: Tuple[Coordinate, ...]
    instructions: Tuple[str, ...] = ()
    distance_m: Optional[float] = None
    profile: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "instructions", tuple(self.instructions))
        if len(self.points) < 2:
            raise ValueError(f"RouteSegment needs at least 2 points, got {len(self.points)}")


@dataclass(frozen=True)
class FetchOutcome:
    """
    Result of fetching the segment for one anchor pair.

    Exactly one of `segment` / `error` is set.
    """

    pair_index: int
    first: AnchorNode
    second: AnchorNode
    segment: Optional[RouteSegment] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.segment is not None


# ────────────────────────────────────────────────────────────────────────────────
# Candidates and results
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CandidateRoute:
    """
    Composite route: [start] + segment points + [end].

    Attributes
    ----------
    points : tuple[Coordinate, ...]
    instructions : tuple[str, ...]
    length_proxy : int
        Score standing in for true distance (point count by default).
    pair_index : int
        Position of the originating anchor pair in enumeration order.
    via : tuple[str, str]
        Names of the two anchors whose segment was stitched in.
    """

    points: Tuple[Coordinate, ...]
    instructions: Tuple[str, ...]
    length_proxy: int
    pair_index: int
    via: Tuple[str, str]

    @property
    def eligible(self) -> bool:
        # start + at least one interior point + end
        return len(self.points) >= 3


@dataclass(frozen=True)
class SelectionResult:
    """
    The route currently exposed to the rendering layer.

    Either provider-derived (`source == "provider"`) or the jitter fallback
    (`source == "jitter"`, empty instructions, `via is None`).
    """

    points: Tuple[Coordinate, ...]
    instructions: Tuple[str, ...] = ()
    length_proxy: int = 0
    source: str = SOURCE_JITTER
    via: Optional[Tuple[str, str]] = field(default=None)

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "instructions", tuple(self.instructions))

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_JITTER

    def to_dict(self) -> Dict[str, Any]:
        return {
              "source": self.source
            , "via": list(self.via) if self.via else None
            , "length_proxy": self.length_proxy
            , "points": [list(p.as_latlon()) for p in self.points]
            , "instructions": list(self.instructions)
        }

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON Feature (LineString, [lon, lat] order) for map layers."""
        return {
              "type": "Feature"
            , "geometry": {
                  "type": "LineString"
                , "coordinates": [p.as_lonlat() for p in self.points]
            }
            , "properties": {
                  "source": self.source
                , "via": list(self.via) if self.via else None
                , "length_proxy": self.length_proxy
                , "instructions": list(self.instructions)
            }
        }
