# messyroute/road/segments.py
# -*- coding: utf-8 -*-

"""
Segment fetcher: one directions call per (from, to) pair, decoded into a
RouteSegment.

Boundary contract
-----------------
• Internally every Coordinate is (lat, lon). ORS wants [lon, lat]; the swap
  happens here and only here.
• The response geometry is an encoded polyline (precision 5), decoded with
  the `polyline` package into (lat, lon) tuples.
• Step instructions come from routes[0].segments[0].steps[*].instruction.
• Anything short of a usable route raises ProviderError (or a subclass).
  ConfigurationError passes through untouched.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import polyline

from messyroute.core.config import get_routing_defaults
from messyroute.core.models import Coordinate, RouteSegment
from messyroute.infra.logging import get_logger
from messyroute.road.ors_client import ORSClient
from messyroute.road.ors_common import NoRoute, ProviderError

_log = get_logger(__name__)

POLYLINE_PRECISION = 5


# ────────────────────────────────────────────────────────────────────────────────
# Response decoding
# ────────────────────────────────────────────────────────────────────────────────

def _extract_instructions(route: Dict[str, Any]) -> Tuple[str, ...]:
    """Instructions of the first leg; empty when ORS sent no steps."""
    segments = route.get("segments") or []
    if not segments or not isinstance(segments[0], dict):
        return ()
    steps = segments[0].get("steps") or []
    return tuple(
        str(step["instruction"])
        for step in steps
        if isinstance(step, dict) and step.get("instruction")
    )


def decode_segment(data: Any, *, profile: Optional[str] = None) -> RouteSegment:
    """
    Turn a raw ORS directions response into a RouteSegment.

    Raises
    ------
    NoRoute
        If `routes` is missing or empty.
    ProviderError
        If the geometry is missing, undecodable or shorter than 2 points.
    """
    routes = data.get("routes") if isinstance(data, dict) else None
    if not routes:
        raise NoRoute("Directions response has no routes")

    route = routes[0]
    geometry = route.get("geometry") if isinstance(route, dict) else None
    if not isinstance(geometry, str) or not geometry:
        raise ProviderError("Directions response has no encoded geometry")

    try:
        decoded = polyline.decode(geometry, POLYLINE_PRECISION)
        points = tuple(Coordinate(lat, lon) for lat, lon in decoded)
    except (ValueError, IndexError, TypeError) as e:
        raise ProviderError(f"Undecodable route geometry: {e}") from e

    if len(points) < 2:
        raise ProviderError(f"Route geometry too short ({len(points)} points)")

    return RouteSegment(
          points=points
        , instructions=_extract_instructions(route)
        , distance_m=_summary_distance(route)
        , profile=profile
    )


def _summary_distance(route: Dict[str, Any]) -> Optional[float]:
    """routes[0].summary.distance in metres; None when absent or not numeric."""
    summary = route.get("summary")
    if not isinstance(summary, dict):
        return None
    distance = summary.get("distance")
    if distance is None:
        return None
    try:
        return float(distance)
    except (TypeError, ValueError):
        _log.debug("ignoring non-numeric route distance: %r", distance)
        return None


# ────────────────────────────────────────────────────────────────────────────────
# Fetcher
# ────────────────────────────────────────────────────────────────────────────────

class SegmentFetcher:
    """
    Fetch road segments between two coordinates.

    Parameters
    ----------
    client : ORSClient
        HTTP client (shared by all worker threads).
    profile : str | None
        Primary ORS profile; defaults to RoutingDefaults.primary_profile.
    fallback_profile : str | None
        Profile retried once when the primary one reports NoRoute. Ignored
        when equal to `profile`.
    snap_radius_m : int | None
        Max distance ORS may snap each waypoint to the road network
        (-1 = unlimited). None keeps the provider default (350 m).
    """

    def __init__(
        self,
        client: ORSClient,
        *,
        profile: Optional[str] = None,
        fallback_profile: Optional[str] = None,
        snap_radius_m: Optional[int] = None,
    ) -> None:
        defaults = get_routing_defaults()
        self.client = client
        self.profile = profile or defaults.primary_profile
        if fallback_profile is None and defaults.enable_fallback:
            fallback_profile = defaults.fallback_profile
        self.fallback_profile = fallback_profile if fallback_profile != self.profile else None
        self.snap_radius_m = snap_radius_m

    def _profiles(self) -> List[str]:
        profiles = [self.profile]
        if self.fallback_profile:
            profiles.append(self.fallback_profile)
        return profiles

    def fetch_segment(self, from_: Coordinate, to: Coordinate) -> RouteSegment:
        """
        One directions request from `from_` to `to`.

        Raises
        ------
        ProviderError
            Network failure, non-success response or empty route set.
        ConfigurationError
            ORS_API_KEY missing (raised by the client on its first call).
        """
        coords = [from_.as_lonlat(), to.as_lonlat()]
        extra: Dict[str, Any] = {}
        if self.snap_radius_m is not None:
            extra["radiuses"] = [self.snap_radius_m] * len(coords)
        profiles = self._profiles()

        for idx, prof in enumerate(profiles):
            try:
                data = self.client.directions(prof, coords, instructions=True, **extra)
                segment = decode_segment(data, profile=prof)
            except NoRoute as exc:
                if idx + 1 < len(profiles):
                    _log.info("No route with %s (%s) → retrying with %s", prof, exc, profiles[idx + 1])
                    continue
                raise

            _log.debug(
                "segment %s→%s via %s: %s points, %s steps",
                from_.as_latlon(),
                to.as_latlon(),
                prof,
                len(segment.points),
                len(segment.instructions),
            )
            return segment

        # unreachable: the loop either returns or re-raises
        raise ProviderError("No routing profile configured")
