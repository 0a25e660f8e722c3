from __future__ import annotations

# ── catalog ─────────────────────────────────────────────────────────────────────
from .anchors import AnchorCatalog, default_catalog, DEFAULT_ANCHORS

# ── geometry / scoring ──────────────────────────────────────────────────────────
from .jitter import jitter_path
from .scoring import ScoreFn, point_count, geodesic_meters, haversine_m

# ── synthesis (public API) ──────────────────────────────────────────────────────
from .synthesizer import (
      DetourSynthesizer
    , SegmentSource
    , select_best
    , jitter_result
)

__all__ = [
    # catalog
      "AnchorCatalog", "default_catalog", "DEFAULT_ANCHORS",
    # geometry / scoring
      "jitter_path", "ScoreFn", "point_count", "geodesic_meters", "haversine_m",
    # synthesis
      "DetourSynthesizer", "SegmentSource", "select_best", "jitter_result",
]
