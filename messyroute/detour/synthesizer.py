# messyroute/detour/synthesizer.py
# -*- coding: utf-8 -*-
"""
Detour synthesizer
==================

Builds a deliberately convoluted route between `start` and `end`:

  1) enumerate every anchor pair (i < j) of the catalog
  2) fetch a real road segment for each pair (bounded worker pool)
  3) fan in: order outcomes by pair index, build candidates
     [start] + segment.points + [end]
  4) keep the candidate with the greatest length proxy strictly below the
     admission bound; the earliest pair wins ties
  5) nothing qualified → jitter path

Failure semantics
-----------------
• ProviderError (and any other per-pair failure) is logged and turned into a
  failed FetchOutcome; the loop never aborts on one pair.
• ConfigurationError is not a per-pair problem and propagates.
• A set `cancel` event abandons pending fetches and returns the jitter path.
• Otherwise synthesize() always returns a SelectionResult.
"""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Iterable, List, Optional, Protocol, Sequence

from messyroute.core.config import get_detour_defaults
from messyroute.core.models import (
      AnchorNode
    , CandidateRoute
    , Coordinate
    , FetchOutcome
    , RouteSegment
    , SelectionResult
    , SOURCE_JITTER
    , SOURCE_PROVIDER
)
from messyroute.detour.anchors import AnchorCatalog
from messyroute.detour.jitter import jitter_path
from messyroute.detour.scoring import ScoreFn, point_count
from messyroute.infra.logging import get_logger
from messyroute.road.ors_common import ConfigurationError, ProviderError

_log = get_logger(__name__)

__all__ = ["DetourSynthesizer", "SegmentSource", "select_best", "jitter_result"]


class SegmentSource(Protocol):
    """Anything that can fetch a RouteSegment between two coordinates."""

    def fetch_segment(self, from_: Coordinate, to: Coordinate) -> RouteSegment:
        ...


# ────────────────────────────────────────────────────────────────────────────────
# Pure helpers
# ────────────────────────────────────────────────────────────────────────────────

def jitter_result(start: Coordinate, end: Coordinate) -> SelectionResult:
    """Wrap the jitter path into a SelectionResult with no instructions."""
    points = jitter_path(start, end)
    return SelectionResult(
          points=points
        , instructions=()
        , length_proxy=len(points)
        , source=SOURCE_JITTER
        , via=None
    )


def select_best(
      candidates: Iterable[CandidateRoute]
    , max_length_proxy: int
) -> Optional[CandidateRoute]:
    """
    Max-by-length-proxy with first-wins ties.

    Candidates are ordered by pair_index before folding, so the outcome does
    not depend on the order in which fetches completed. Candidates at or
    above `max_length_proxy`, or with fewer than 3 points, are never chosen.
    """
    best: Optional[CandidateRoute] = None
    for cand in sorted(candidates, key=lambda c: c.pair_index):
        if not cand.eligible:
            continue
        if cand.length_proxy >= max_length_proxy:
            _log.debug(
                "candidate #%d via %s rejected: proxy=%d >= bound=%d",
                cand.pair_index, cand.via, cand.length_proxy, max_length_proxy,
            )
            continue
        if best is None or cand.length_proxy > best.length_proxy:
            best = cand
    return best


# ────────────────────────────────────────────────────────────────────────────────
# Synthesizer
# ────────────────────────────────────────────────────────────────────────────────

class DetourSynthesizer:
    """
    Parameters
    ----------
    fetcher : SegmentSource
        Usually a messyroute.road.segments.SegmentFetcher.
    catalog : AnchorCatalog
        Anchors whose pairs form the enumeration space.
    max_length_proxy : int | None
        Exclusive admission bound (default from DetourDefaults).
    workers : int | None
        Simultaneous fetches; 1 means sequential.
    score : ScoreFn
        Length proxy; point count unless replaced together with the bound.
    fallback_note : str | None
        Instruction used when the winning segment carries none.
    poll_interval_s : float
        How often a waiting synthesis checks its cancel event.
    """

    def __init__(
        self,
        fetcher: SegmentSource,
        catalog: AnchorCatalog,
        *,
        max_length_proxy: Optional[int] = None,
        workers: Optional[int] = None,
        score: ScoreFn = point_count,
        fallback_note: Optional[str] = None,
        poll_interval_s: float = 0.1,
    ) -> None:
        defaults = get_detour_defaults()
        self.fetcher = fetcher
        self.catalog = catalog
        self.max_length_proxy = int(max_length_proxy if max_length_proxy is not None else defaults.max_length_proxy)
        self.workers = int(workers if workers is not None else defaults.workers)
        self.score = score
        self.fallback_note = fallback_note if fallback_note is not None else defaults.fallback_note
        self.poll_interval_s = float(poll_interval_s)

        if self.max_length_proxy <= 0:
            raise ValueError(f"max_length_proxy must be positive, got {self.max_length_proxy}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

    # ────────────────────────────────────────────────────────────────────
    # Public API
    # ────────────────────────────────────────────────────────────────────
    def synthesize(
        self,
        start: Coordinate,
        end: Coordinate,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> SelectionResult:
        """
        Return the longest admissible stitched route, or the jitter path.

        Raises
        ------
        ConfigurationError
            The provider is not configured (e.g. missing API key).
        """
        start = Coordinate.coerce(start)
        end = Coordinate.coerce(end)

        _log.info(
            "Synthesizing detour %s → %s over %d anchors (%d pairs, workers=%d, bound=%d)",
            start.as_latlon(), end.as_latlon(), len(self.catalog),
            self.catalog.pair_count(), self.workers, self.max_length_proxy,
        )

        outcomes = self.collect_outcomes(cancel=cancel)
        if cancel is not None and cancel.is_set():
            _log.info("Synthesis cancelled after %d outcomes; returning jitter path", len(outcomes))
            return jitter_result(start, end)

        candidates = [self._assemble(start, end, o) for o in outcomes if o.ok]
        best = select_best(candidates, self.max_length_proxy)

        n_failed = sum(1 for o in outcomes if not o.ok)
        if best is None:
            _log.warning(
                "No qualifying candidate (%d pairs, %d failed, %d built) → jitter fallback",
                len(outcomes), n_failed, len(candidates),
            )
            return jitter_result(start, end)

        _log.info(
            "Selected pair #%d via %s: proxy=%d (%d candidates, %d failed)",
            best.pair_index, best.via, best.length_proxy, len(candidates), n_failed,
        )
        return SelectionResult(
              points=best.points
            , instructions=best.instructions or (self.fallback_note,)
            , length_proxy=best.length_proxy
            , source=SOURCE_PROVIDER
            , via=best.via
        )

    def collect_outcomes(
        self,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> List[FetchOutcome]:
        """
        Fetch every anchor pair and return outcomes ordered by pair index.

        Sequential when workers == 1, otherwise a bounded fan-out whose
        results are gathered at this single point.
        """
        nodes = self.catalog.anchors()
        pairs = list(self.catalog.pairs())
        if not pairs:
            return []

        outcomes: List[FetchOutcome] = []

        if self.workers == 1:
            for k, i, j in pairs:
                if cancel is not None and cancel.is_set():
                    break
                outcomes.append(self._fetch_pair(k, nodes[i], nodes[j]))
            return outcomes

        pool = ThreadPoolExecutor(
              max_workers=min(self.workers, len(pairs))
            , thread_name_prefix="segment"
        )
        try:
            pending: set[Future] = {
                pool.submit(self._fetch_pair, k, nodes[i], nodes[j]) for k, i, j in pairs
            }
            while pending:
                done, pending = wait(pending, timeout=self.poll_interval_s, return_when=FIRST_COMPLETED)
                for fut in done:
                    # ConfigurationError surfaces here
                    outcomes.append(fut.result())
                if cancel is not None and cancel.is_set():
                    break
        finally:
            # abandoned fetches finish in the background; their outcomes are dropped
            pool.shutdown(wait=False, cancel_futures=True)

        outcomes.sort(key=lambda o: o.pair_index)
        return outcomes

    # ────────────────────────────────────────────────────────────────────
    # Internals
    # ────────────────────────────────────────────────────────────────────
    def _fetch_pair(self, pair_index: int, first: AnchorNode, second: AnchorNode) -> FetchOutcome:
        try:
            segment = self.fetcher.fetch_segment(first.coords, second.coords)
        except ConfigurationError:
            raise
        except ProviderError as exc:
            _log.warning("pair #%d %s→%s skipped: %s", pair_index, first.name, second.name, exc)
            return FetchOutcome(pair_index, first, second, error=f"{type(exc).__name__}: {exc}")
        except Exception as exc:  # noqa: BLE001
            _log.exception("pair #%d %s→%s failed unexpectedly", pair_index, first.name, second.name)
            return FetchOutcome(pair_index, first, second, error=f"{type(exc).__name__}: {exc}")
        return FetchOutcome(pair_index, first, second, segment=segment)

    def _assemble(self, start: Coordinate, end: Coordinate, outcome: FetchOutcome) -> CandidateRoute:
        segment = outcome.segment
        points: Sequence[Coordinate] = (start, *segment.points, end)
        return CandidateRoute(
              points=tuple(points)
            , instructions=segment.instructions
            , length_proxy=int(self.score(points))
            , pair_index=outcome.pair_index
            , via=(outcome.first.name, outcome.second.name)
        )
