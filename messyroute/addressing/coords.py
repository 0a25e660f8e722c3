# messyroute/addressing/coords.py
# -*- coding: utf-8 -*-

"""
Coordinate / geocoder-hit helpers for the addressing subsystem.

Uses:
- Coordinate (from messyroute.core.models)
- Place: a geocoded search hit as the UI receives it
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from messyroute.core.models import Coordinate
from messyroute.infra.logging import get_logger

_log = get_logger(__name__)

_LATLON_RE = re.compile(r"^\s*([+-]?\d+(?:\.\d+)?)\s*,\s*([+-]?\d+(?:\.\d+)?)\s*$")


@dataclass(frozen=True)
class Place:
    """A geocoded place: display name plus coordinates."""

    display_name: str
    coords: Coordinate


# ------------------------------------------------------------------------------
# Parse "lat,lon"
# ------------------------------------------------------------------------------

def parse_latlon_str(text: str) -> Optional[Coordinate]:
    """
    Accepts 'lat,lon'. Returns a Coordinate or None.
    """
    if not isinstance(text, str):
        return None

    m = _LATLON_RE.match(text.strip())
    if not m:
        return None

    try:
        return Coordinate(float(m.group(1)), float(m.group(2)))
    except ValueError:
        return None


def parse_coordinate(lat: Union[str, float], lon: Union[str, float]) -> Coordinate:
    """
    Build a Coordinate from the string lat/lon the geocoder hands out.

    Raises
    ------
    ValueError
        If either value is not numeric or the pair is out of range.
    """
    try:
        return Coordinate(float(lat), float(lon))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid coordinate ({lat!r}, {lon!r}): {e}") from e


# ------------------------------------------------------------------------------
# Normalize raw Nominatim hits
# ------------------------------------------------------------------------------

def normalize_hit(raw: Dict[str, Any]) -> Optional[Place]:
    """
    Normalize a Nominatim search hit ({"display_name", "lat", "lon"} with
    string coordinates) into a Place. None if unusable.
    """
    if not isinstance(raw, dict):
        return None

    name = str(raw.get("display_name") or raw.get("name") or "").strip()
    if not name:
        return None

    try:
        coords = parse_coordinate(raw.get("lat"), raw.get("lon"))
    except ValueError:
        return None

    return Place(display_name=name, coords=coords)


def filter_hits(hits: Any, *, exclude_name: Optional[str] = None) -> List[Place]:
    """
    Normalize a list of raw hits, dropping invalid ones and any whose display
    name equals `exclude_name` (the destination already selected).
    """
    if hits is None:
        arr: Iterable[Any] = []
    elif isinstance(hits, list):
        arr = hits
    else:
        arr = [hits]

    out: List[Place] = []
    for item in arr:
        place = normalize_hit(item)
        if place is None:
            _log.debug("dropping unusable geocoder hit: %r", item)
            continue
        if exclude_name and place.display_name == exclude_name:
            continue
        out.append(place)
    return out
