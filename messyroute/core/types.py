# messyroute/core/types.py
# -*- coding: utf-8 -*-

"""
Shared type aliases and lightweight protocols.

Kept free of project imports so anything can import it without cycles.

Contents
--------
- StrPath: str or pathlib.Path
- LatLonPair / LonLatPair: raw coordinate pairs on each side of the
  provider boundary
- HasLatLon: protocol for duck-typed points
"""

from __future__ import annotations

from pathlib import Path
from typing import (
      List
    , Protocol
    , Tuple
    , Union
    , runtime_checkable
)


# ────────────────────────────────────────────────────────────────────────────────
# Path-like
# ────────────────────────────────────────────────────────────────────────────────

StrPath = Union[str, Path]
"""Path representation accepted by the IO helpers (string or Path)."""


# ────────────────────────────────────────────────────────────────────────────────
# Geographic helpers
# ────────────────────────────────────────────────────────────────────────────────

LatLonPair = Tuple[float, float]
"""(lat, lon) in decimal degrees; the internal order."""

LonLatPair = List[float]
"""[lon, lat] in decimal degrees; the order ORS expects on the wire."""


@runtime_checkable
class HasLatLon(Protocol):
    """Anything exposing `lat` and `lon` attributes."""

    lat: float
    lon: float
