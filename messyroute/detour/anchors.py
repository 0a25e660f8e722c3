# messyroute/detour/anchors.py
# -*- coding: utf-8 -*-
"""
Anchor catalog
==============

A fixed, ordered, read-only collection of named anchor points used as
intermediate stitching nodes by the detour synthesizer.

The catalog is an ordinary object built by whoever composes the
synthesizer, so tests can hand in a three-anchor catalog instead of the
default one.

JSON record shape (for `AnchorCatalog.from_json`)
--------------------------------------------------
[
  {"name": "France", "lat": 46.2276, "lon": 2.2137},
  ...
]
Invalid records are skipped; if none survive a ValueError is raised.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from messyroute.core.models import AnchorNode, Coordinate
from messyroute.core.types import StrPath
from messyroute.infra.logging import get_logger

_log = get_logger(__name__)

__all__ = ["AnchorCatalog", "default_catalog", "DEFAULT_ANCHORS"]


# Approximate country centroids (lat, lon)
DEFAULT_ANCHORS: Tuple[Tuple[str, float, float], ...] = (
      ("France", 46.2276, 2.2137)
    , ("Germany", 51.1657, 10.4515)
    , ("Spain", 40.4637, -3.7492)
    , ("Italy", 41.8719, 12.5674)
    , ("Poland", 51.9194, 19.1451)
    , ("Netherlands", 52.1326, 5.2913)
    , ("Austria", 47.5162, 14.5501)
    , ("Belgium", 50.5039, 4.4699)
)


class AnchorCatalog:
    """
    Immutable ordered sequence of AnchorNode with unique names.

    Raises
    ------
    ValueError
        If two anchors share a name.
    """

    def __init__(self, nodes: Iterable[AnchorNode]) -> None:
        nodes_t = tuple(nodes)
        seen = set()
        for node in nodes_t:
            if node.name in seen:
                raise ValueError(f"Duplicate anchor name: {node.name!r}")
            seen.add(node.name)
        self._nodes = nodes_t

    def anchors(self) -> Tuple[AnchorNode, ...]:
        return self._nodes

    def pairs(self) -> Iterator[Tuple[int, int, int]]:
        """
        Yield (pair_index, i, j) for every 0 <= i < j < N, lexicographic.

        The pair index is the position in this enumeration and is what the
        synthesizer uses to break ties.
        """
        n = len(self._nodes)
        k = 0
        for i in range(n):
            for j in range(i + 1, n):
                yield k, i, j
                k += 1

    def pair_count(self) -> int:
        n = len(self._nodes)
        return n * (n - 1) // 2

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[AnchorNode]:
        return iter(self._nodes)

    def __getitem__(self, idx: int) -> AnchorNode:
        return self._nodes[idx]

    def __repr__(self) -> str:
        return f"AnchorCatalog({[n.name for n in self._nodes]!r})"

    # ────────────────────────────────────────────────────────────────────
    # Loaders
    # ────────────────────────────────────────────────────────────────────
    @classmethod
    def from_records(cls, records: Iterable[Tuple[str, float, float]]) -> "AnchorCatalog":
        return cls(AnchorNode(name, Coordinate(lat, lon)) for name, lat, lon in records)

    @classmethod
    def from_json(cls, path: StrPath) -> "AnchorCatalog":
        """Load anchors from a JSON list of {name, lat, lon} records."""
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        if not isinstance(raw, list):
            raise ValueError(f"Anchor file {path} must contain a JSON list")

        nodes: List[AnchorNode] = []
        for rec in raw:
            node = _norm_record(rec)
            if node is None:
                _log.warning("Skipping invalid anchor record: %r", rec)
                continue
            nodes.append(node)

        if not nodes:
            raise ValueError(f"No valid anchors in {path}")

        _log.info("Loaded %d anchors from %s", len(nodes), path)
        return cls(nodes)


def _norm_record(r: Dict[str, Any]) -> Optional[AnchorNode]:
    """Normalize one JSON record; None when name/lat/lon are unusable."""
    if not isinstance(r, dict):
        return None
    name = str(r.get("name") or "").strip()
    if not name:
        return None
    try:
        return AnchorNode(name, Coordinate(float(r["lat"]), float(r["lon"])))
    except (KeyError, TypeError, ValueError):
        return None


def default_catalog() -> AnchorCatalog:
    """The built-in catalog of European country centroids."""
    return AnchorCatalog.from_records(DEFAULT_ANCHORS)
