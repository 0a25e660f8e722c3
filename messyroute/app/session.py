# messyroute/app/session.py
# -*- coding: utf-8 -*-

"""
Selection session: the state the map view keeps between user actions.

Holds start / end / target and the current SelectionResult. Committing a
destination runs the detour synthesizer in the background and replaces the
current result when it finishes.

Superseded commits
------------------
Every commit bumps a generation counter and sets the cancel event of the
previous in-flight synthesis. A synthesis whose generation is no longer
current when it completes is discarded, so a slow old request can never
overwrite a newer selection.

Missing origin
--------------
A destination committed before the origin is known is remembered and
synthesized as soon as `set_origin()` is called.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import List, Optional, Protocol, Union

from messyroute.addressing.coords import Place, parse_coordinate
from messyroute.addressing.nominatim import GeocodeError
from messyroute.core.models import Coordinate, SelectionResult
from messyroute.detour.synthesizer import DetourSynthesizer
from messyroute.infra.logging import get_logger

_log = get_logger(__name__)

DEFAULT_ORIGIN_NAME = "Current Location"


class Geocoder(Protocol):
    def search(self, text: str, *, limit: int = 5) -> List[Place]:
        ...

    def reverse(self, coords: Coordinate) -> Optional[str]:
        ...


class SelectionSession:
    """
    Parameters
    ----------
    synthesizer : DetourSynthesizer
        Produces the route for each committed destination.
    geocoder : Geocoder | None
        Used for origin names and destination search.
    executor : Executor | None
        Runs syntheses; a private 2-thread pool is created when omitted so a
        new commit can start while a superseded one is still winding down.
    min_query_length : int
        Shorter search queries return no results.
    """

    def __init__(
        self,
        synthesizer: DetourSynthesizer,
        *,
        geocoder: Optional[Geocoder] = None,
        executor: Optional[Executor] = None,
        min_query_length: int = 3,
    ) -> None:
        self._synth = synthesizer
        self._geocoder = geocoder
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="synthesis")
        self.min_query_length = int(min_query_length)

        self._lock = threading.RLock()
        self.start: Optional[Coordinate] = None
        self.start_name: str = ""
        self.end: Optional[Coordinate] = None
        self.end_name: str = ""
        self.target: Optional[Coordinate] = None

        self._result: Optional[SelectionResult] = None
        self._generation = 0
        self._inflight: Optional[Future] = None
        self._cancel: Optional[threading.Event] = None
        self._deferred = False

    # ────────────────────────────────────────────────────────────────────
    # State accessors
    # ────────────────────────────────────────────────────────────────────
    @property
    def result(self) -> Optional[SelectionResult]:
        with self._lock:
            return self._result

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def pending(self) -> bool:
        """True while a synthesis is in flight or a commit awaits an origin."""
        with self._lock:
            busy = self._inflight is not None and not self._inflight.done()
            return busy or self._deferred

    # ────────────────────────────────────────────────────────────────────
    # User actions
    # ────────────────────────────────────────────────────────────────────
    def set_origin(
        self,
        coords: Union[Coordinate, tuple],
        name: Optional[str] = None,
    ) -> Optional[Future]:
        """
        Record the user's position. Runs a deferred destination commit, if any.
        """
        coords = Coordinate.coerce(coords)
        if name is None:
            name = self._reverse_name(coords)

        with self._lock:
            self.start = coords
            self.start_name = name
            if self.end is None:
                self.end = coords
            deferred = self._deferred
            target, end_name = self.target, self.end_name

        _log.info("Origin set to %s (%s)", coords.as_latlon(), name)
        if deferred and target is not None:
            _log.info("Running deferred commit for %s", target.as_latlon())
            return self.commit_destination(target, end_name)
        return None

    def handle_select(
        self,
        lat: Union[str, float],
        lon: Union[str, float],
        name: str,
    ) -> Optional[Future]:
        """
        A search result was picked: parse its coordinates and commit it.

        Raises
        ------
        ValueError
            If lat/lon can't be parsed into a valid Coordinate.
        """
        return self.commit_destination(parse_coordinate(lat, lon), name)

    def commit_destination(
        self,
        coords: Union[Coordinate, tuple],
        name: Optional[str] = None,
    ) -> Optional[Future]:
        """
        Commit a destination and start synthesis.

        Returns the synthesis Future, or None when the origin is still unknown
        (the commit is then deferred until set_origin()).
        """
        coords = Coordinate.coerce(coords)

        with self._lock:
            self.target = coords
            self.end = coords
            if name is not None:
                self.end_name = name

            if self.start is None:
                self._deferred = True
                _log.warning("Destination %s committed before origin is known; deferring", coords.as_latlon())
                return None

            self._deferred = False
            self._generation += 1
            gen = self._generation
            if self._cancel is not None:
                self._cancel.set()
            cancel = threading.Event()
            self._cancel = cancel
            start = self.start

            fut = self._executor.submit(self._run, gen, start, coords, cancel)
            self._inflight = fut

        _log.info("Commit #%d: %s → %s (%s)", gen, start.as_latlon(), coords.as_latlon(), self.end_name)
        return fut

    def search(self, query: str, *, limit: int = 5) -> List[Place]:
        """
        Destination search; skips the current destination name.

        Queries shorter than `min_query_length` and sessions without a
        geocoder return [].
        """
        query = (query or "").strip()
        if self._geocoder is None or len(query) < self.min_query_length:
            return []
        places = self._geocoder.search(query, limit=limit)
        with self._lock:
            end_name = self.end_name
        return [p for p in places if p.display_name != end_name]

    # ────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ────────────────────────────────────────────────────────────────────
    def wait(self, timeout: Optional[float] = None) -> Optional[SelectionResult]:
        """
        Block until the latest synthesis finishes; return the current result.

        Re-raises whatever the synthesis raised (e.g. ConfigurationError).
        """
        with self._lock:
            fut = self._inflight
        if fut is not None:
            fut.result(timeout=timeout)
        return self.result

    def close(self) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.set()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "SelectionSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ────────────────────────────────────────────────────────────────────
    # Internals
    # ────────────────────────────────────────────────────────────────────
    def _run(
        self,
        gen: int,
        start: Coordinate,
        end: Coordinate,
        cancel: threading.Event,
    ) -> SelectionResult:
        result = self._synth.synthesize(start, end, cancel=cancel)
        with self._lock:
            if gen != self._generation:
                _log.info("Discarding stale result of commit #%d (current #%d)", gen, self._generation)
                return result
            self._result = result
        _log.info(
            "Commit #%d resolved: source=%s points=%d via=%s",
            gen, result.source, len(result.points), result.via,
        )
        return result

    def _reverse_name(self, coords: Coordinate) -> str:
        if self._geocoder is None:
            return DEFAULT_ORIGIN_NAME
        try:
            return self._geocoder.reverse(coords) or DEFAULT_ORIGIN_NAME
        except GeocodeError as exc:
            _log.warning("Reverse geocoding failed for %s: %s", coords.as_latlon(), exc)
            return DEFAULT_ORIGIN_NAME
