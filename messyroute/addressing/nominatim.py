# messyroute/addressing/nominatim.py
# -*- coding: utf-8 -*-
"""
Forward / reverse geocoding against OpenStreetMap Nominatim.

Only the boundary the session needs:
- search(text)    → list[Place]     (GET /search?format=json&q=...)
- reverse(coords) → display name    (GET /reverse?format=json&lat=..&lon=..)

Requests are throttled process-wide (Nominatim's usage policy asks for at
most one request per second) and carry a User-Agent.

Environment
-----------
- NOMINATIM_BASE_URL   (default https://nominatim.openstreetmap.org)
- NOMINATIM_USER_AGENT (default "messy-route/0.1")
"""

from __future__ import annotations

import os
import threading
import time
from typing import Any, Dict, List, Optional

import requests

from messyroute.addressing.coords import Place, filter_hits
from messyroute.core.models import Coordinate
from messyroute.infra.logging import get_logger

_log = get_logger(__name__)

DEFAULT_BASE_URL = "https://nominatim.openstreetmap.org"
FALLBACK_UA = "messy-route/0.1"


class GeocodeError(Exception):
    """Nominatim could not be reached or answered with an error."""


class NominatimClient:
    """
    Parameters
    ----------
    base_url : str | None
        Service root; env NOMINATIM_BASE_URL or the public instance.
    user_agent : str | None
        Env NOMINATIM_USER_AGENT or a generic fallback.
    timeout_s : float
        Per-request timeout.
    min_interval_s : float
        Minimum spacing between two requests from this client.
    session : requests.Session | None
        Injected session (tests).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        *,
        timeout_s: float = 10.0,
        min_interval_s: float = 1.1,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("NOMINATIM_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        ua = user_agent or os.getenv("NOMINATIM_USER_AGENT")
        if not ua:
            _log.warning("NOMINATIM_USER_AGENT not set; using fallback UA %r", FALLBACK_UA)
            ua = FALLBACK_UA
        self.timeout_s = float(timeout_s)
        self.min_interval_s = float(min_interval_s)
        self._sess = session or requests.Session()
        self._sess.headers.update({"User-Agent": ua, "Accept": "application/json"})
        self._lock = threading.Lock()
        self._last_request_ts = 0.0

    def _throttled_get(self, path: str, params: Dict[str, Any]) -> Any:
        with self._lock:
            delta = time.time() - self._last_request_ts
            if delta < self.min_interval_s:
                time.sleep(self.min_interval_s - delta)
            self._last_request_ts = time.time()

        url = f"{self.base_url}{path}"
        try:
            resp = self._sess.get(url, params=params, timeout=self.timeout_s)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            _log.warning("GEOCODE %s failed: %s", path, e)
            raise GeocodeError(f"Nominatim {path} failed: {e}") from e
        except ValueError as e:
            raise GeocodeError(f"Nominatim {path} returned invalid JSON") from e

    def search(self, text: str, *, limit: int = 5) -> List[Place]:
        """Forward geocode free text into up to `limit` places."""
        text = (text or "").strip()
        if not text:
            return []
        raw = self._throttled_get("/search", {"format": "json", "q": text, "limit": int(limit)})
        places = filter_hits(raw)
        _log.info("GEOCODE search %r → %d places", text, len(places))
        return places

    def reverse(self, coords: Coordinate) -> Optional[str]:
        """Display name for a coordinate, or None if Nominatim has none."""
        raw = self._throttled_get(
            "/reverse",
            {"format": "json", "lat": coords.lat, "lon": coords.lon},
        )
        name = raw.get("display_name") if isinstance(raw, dict) else None
        _log.debug("GEOCODE reverse %s → %r", coords.as_latlon(), name)
        return str(name) if name else None

    def close(self) -> None:
        self._sess.close()
