# messyroute/road/ors_mixins.py
# -*- coding: utf-8 -*-
"""
Reusable mixins for the ORS HTTP client.

Expectations for the concrete client class that inherits these mixins:
- Methods:
    self._post(endpoint, json=None) -> dict

Notes
-----
• Inputs here are already in provider order ([lon, lat]); the conversion from
  the internal (lat, lon) order happens in messyroute.road.segments.
• Errors come from ors_common (ProviderError family) via the client.
"""

from __future__ import annotations

from typing import Any as _Any, Dict as _Dict, List as _List, Sequence as _Sequence

from messyroute.infra.logging import get_logger
from .ors_common import _short

_log = get_logger(__name__)


# ────────────────────────────────────────────────────────────────────────────────
# Routing
# ────────────────────────────────────────────────────────────────────────────────

class RoutingMixin:
    """
    Directions helpers.

    Requires concrete client to provide:
      - self._post(...)
    """

    def directions(
        self,
        profile: str,
        coords_lonlat: _Sequence[_Sequence[float]],
        *,
        instructions: bool = True,
        **kwargs: _Any,
    ) -> _Dict[str, _Any]:
        """
        Low-level directions call (JSON flavour, encoded polyline geometry).

        Parameters
        ----------
        profile : str
            'driving-car', 'driving-hgv', 'cycling-regular', etc.
        coords_lonlat : sequence of [lon, lat]
            Waypoints in ORS order.
        instructions : bool
            Ask ORS for turn-by-turn steps.
        kwargs : dict
            Extra ORS body parameters (e.g. preference='shortest').

        Returns
        -------
        dict : raw ORS response ({"routes": [...], ...})
        """
        coords: _List[_List[float]] = [[float(c[0]), float(c[1])] for c in coords_lonlat]
        body: _Dict[str, _Any] = {"coordinates": coords, "instructions": bool(instructions), **kwargs}

        _log.info("ROUTE %s coords=%s", profile, _short(coords))
        data = self._post(f"/v2/directions/{profile}", json=body)
        _log.debug(
            "ROUTE %s ok keys=%s routes=%s",
            profile,
            list(data.keys()) if isinstance(data, dict) else type(data).__name__,
            len((data or {}).get("routes") or []) if isinstance(data, dict) else 0,
        )
        return data
