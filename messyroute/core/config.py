# messyroute/core/config.py
# -*- coding: utf-8 -*-

"""
Core configuration models and globals.

Pure configuration structures, independent of the HTTP client. Provider
connection settings (API key, timeouts, cache) live in
messyroute.road.ors_common.ORSConfig.

Current contents
----------------
- DetourDefaults: knobs of the detour synthesizer
- RoutingDefaults: routing profiles used for anchor-pair segments
"""

from __future__ import annotations

from dataclasses import dataclass


# ────────────────────────────────────────────────────────────────────────────────
# Detour synthesis
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DetourDefaults:
    """
    Defaults for the detour synthesizer.

    Attributes
    ----------
    max_length_proxy : int
        Exclusive admission bound on the length proxy. 10000 points stands in
        for roughly 6000 route-km, the provider's own route length limit.
    workers : int
        Simultaneous segment fetches. 1 means strictly sequential.
    fallback_note : str
        Instruction used when the winning segment carries no steps.
    """

    max_length_proxy: int = 10000
    workers: int = 4
    fallback_note: str = "custom messy route generated"


# ────────────────────────────────────────────────────────────────────────────────
# Routing defaults
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RoutingDefaults:
    """
    Routing profiles for segment fetches.

    Attributes
    ----------
    primary_profile : str
        ORS profile tried first (e.g. 'driving-car').
    fallback_profile : str
        Profile retried when the primary one reports no route.
    enable_fallback : bool
        Whether the fallback profile is tried at all.
    """

    primary_profile: str = "driving-car"
    fallback_profile: str = "driving-car"
    enable_fallback: bool = False


DETOUR_DEFAULTS = DetourDefaults()
ROUTING_DEFAULTS = RoutingDefaults()


def get_detour_defaults() -> DetourDefaults:
    """Return the global detour synthesizer defaults."""
    return DETOUR_DEFAULTS


def get_routing_defaults() -> RoutingDefaults:
    return ROUTING_DEFAULTS
