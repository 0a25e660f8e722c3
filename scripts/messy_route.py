#!/usr/bin/env python3
# scripts/messy_route.py
# -*- coding: utf-8 -*-

"""
Drive one messy-route selection end to end, the way the map view would:

  1) resolve origin (the "current location") and destination
     ('lat,lon' or free text geocoded through Nominatim)
  2) open a SelectionSession, set the origin, commit the destination
  3) wait for the detour synthesizer and print the SelectionResult as JSON
     (optionally also write it as a GeoJSON Feature for a map layer)

Exit codes
----------
  0  a route was produced (provider-derived or jitter fallback)
  1  origin/destination could not be resolved
  2  provider configuration error (e.g. ORS_API_KEY missing)
"""

from __future__ import annotations

# ────────────────────────────────────────────────────────────────────────────────
# Path bootstrap (must be first)
# ────────────────────────────────────────────────────────────────────────────────
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]  # repo root (one level above /scripts)
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# ────────────────────────────────────────────────────────────────────────────────
# Standard libs
# ────────────────────────────────────────────────────────────────────────────────
import argparse
import json
from argparse import BooleanOptionalAction
from typing import Any, Dict, Optional

# ────────────────────────────────────────────────────────────────────────────────
# Project imports
# ────────────────────────────────────────────────────────────────────────────────
from messyroute.infra.logging import init_logging, get_current_log_path, get_logger, log_banner
from messyroute.core.config import get_detour_defaults, get_routing_defaults
from messyroute.addressing.coords import Place, parse_latlon_str
from messyroute.addressing.nominatim import GeocodeError, NominatimClient
from messyroute.app.session import SelectionSession
from messyroute.detour import AnchorCatalog, DetourSynthesizer, default_catalog
from messyroute.road.ors_client import ORSClient
from messyroute.road.ors_common import ConfigurationError, ORSConfig
from messyroute.road.segments import SegmentFetcher

_log = get_logger(__name__)


# ────────────────────────────────────────────────────────────────────────────────
# CLI parser
# ────────────────────────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    detour = get_detour_defaults()
    routing = get_routing_defaults()

    parser = argparse.ArgumentParser(
        description="Synthesize a deliberately convoluted route between two places."
    )

    # Required spatial inputs
    parser.add_argument(
          "--origin"
        , required=True
        , help="Origin ('lat,lon' or free text)."
    )
    parser.add_argument(
          "--destination"
        , required=True
        , help="Destination ('lat,lon' or free text)."
    )

    # Synthesis knobs
    parser.add_argument(
          "--anchors-json"
        , type=Path
        , default=None
        , help="JSON list of {name, lat, lon} anchors. Default: built-in country centroids."
    )
    parser.add_argument(
          "--workers"
        , type=int
        , default=detour.workers
        , help=f"Simultaneous segment fetches (1 = sequential). Default: {detour.workers}"
    )
    parser.add_argument(
          "--max-length-proxy"
        , type=int
        , default=detour.max_length_proxy
        , help=f"Exclusive admission bound on the point count. Default: {detour.max_length_proxy}"
    )
    parser.add_argument(
          "--profile"
        , default=routing.primary_profile
        , help=f"ORS routing profile. Default: {routing.primary_profile}"
    )
    parser.add_argument(
          "--fallback-profile"
        , default=None
        , help="Profile retried when the primary reports no route."
    )
    parser.add_argument(
          "--snap-radius"
        , type=int
        , default=-1
        , help="Max snapping distance (m) for anchors; -1 = unlimited. Default: -1"
    )

    # Provider knobs
    parser.add_argument(
          "--timeout"
        , type=float
        , default=30.0
        , help="Per-segment read timeout in seconds. Default: 30"
    )
    parser.add_argument(
          "--cache"
        , default=False
        , action=BooleanOptionalAction
        , help="Cache directions responses in SQLite."
    )

    # Output + logging
    parser.add_argument(
          "--geojson"
        , type=Path
        , default=None
        , help="Also write the route as a GeoJSON Feature to this path."
    )
    parser.add_argument(
          "--pretty"
        , action="store_true"
        , help="Pretty-print JSON."
    )
    parser.add_argument(
          "--log-level"
        , default="INFO"
        , choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    parser.add_argument(
          "--write-log"
        , action="store_true"
        , help="Also write a per-run log file under logs/."
    )

    return parser


# ────────────────────────────────────────────────────────────────────────────────
# Small helpers
# ────────────────────────────────────────────────────────────────────────────────

def resolve_place(
      value: str
    , geocoder: NominatimClient
) -> Optional[Place]:
    """
    'lat,lon' → Place without a network call; otherwise the first Nominatim hit.
    Returns None if nothing matches or the geocoder fails.
    """
    coords = parse_latlon_str(value)
    if coords is not None:
        return Place(display_name=value.strip(), coords=coords)

    try:
        places = geocoder.search(value, limit=1)
    except GeocodeError as exc:
        _log.error("Geocoding %r failed: %s", value, exc)
        return None

    if not places:
        _log.warning("No geocoding result for %r", value)
        return None
    return places[0]


def _dump(payload: Dict[str, Any], pretty: bool) -> str:
    if pretty:
        return json.dumps(payload, ensure_ascii=False, indent=2)
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


# ────────────────────────────────────────────────────────────────────────────────
# Main
# ────────────────────────────────────────────────────────────────────────────────

def main(
      argv: Optional[list[str]] = None
    , *
    , client: Optional[ORSClient] = None
    , geocoder: Optional[NominatimClient] = None
) -> int:
    args = _build_parser().parse_args(argv)

    init_logging(level=args.log_level, force=True, write_output=args.write_log)
    if args.write_log:
        _log.info("Log file: %s", get_current_log_path())
    log_banner(_log, f"messy-route: {args.origin} → {args.destination}")

    geocoder = geocoder or NominatimClient()
    origin = resolve_place(args.origin, geocoder)
    destination = resolve_place(args.destination, geocoder)
    if origin is None or destination is None:
        _log.error("Could not resolve origin=%r or destination=%r", args.origin, args.destination)
        return 1

    catalog = AnchorCatalog.from_json(args.anchors_json) if args.anchors_json else default_catalog()

    owns_client = client is None
    client = client or ORSClient(
        cfg=ORSConfig(read_timeout_s=args.timeout, cache_enabled=args.cache)
    )
    fetcher = SegmentFetcher(
          client
        , profile=args.profile
        , fallback_profile=args.fallback_profile
        , snap_radius_m=args.snap_radius
    )
    synthesizer = DetourSynthesizer(
          fetcher
        , catalog
        , max_length_proxy=args.max_length_proxy
        , workers=args.workers
    )

    try:
        with SelectionSession(synthesizer, geocoder=geocoder) as session:
            session.set_origin(origin.coords, origin.display_name)
            session.commit_destination(destination.coords, destination.display_name)
            try:
                result = session.wait()
            except ConfigurationError as exc:
                _log.error("Provider configuration error: %s", exc)
                return 2
    finally:
        if owns_client:
            client.close()

    payload = {
          "origin": {"label": origin.display_name, "lat": origin.coords.lat, "lon": origin.coords.lon}
        , "destination": {"label": destination.display_name, "lat": destination.coords.lat, "lon": destination.coords.lon}
        , "route": result.to_dict()
    }
    print(_dump(payload, args.pretty))

    if args.geojson is not None:
        args.geojson.parent.mkdir(parents=True, exist_ok=True)
        args.geojson.write_text(_dump(result.to_geojson(), args.pretty), encoding="utf-8")
        _log.info("GeoJSON written to %s", args.geojson)

    _log.info(
        "Done: source=%s points=%d via=%s",
        result.source, len(result.points), result.via,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
