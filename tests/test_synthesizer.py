import threading
import time

import pytest

from conftest import StubFetcher, make_segment
from messyroute.core.models import AnchorNode, CandidateRoute, Coordinate
from messyroute.detour.anchors import AnchorCatalog
from messyroute.detour.jitter import jitter_path
from messyroute.detour.scoring import geodesic_meters
from messyroute.detour.synthesizer import DetourSynthesizer, jitter_result, select_best
from messyroute.road.ors_common import ConfigurationError, NoRoute, ProviderError

START = Coordinate(1, 1)
END = Coordinate(2, 2)


@pytest.mark.parametrize("workers", [1, 3])
def test_equal_candidates_pick_the_first_pair(abc_catalog, workers):
    fetcher = StubFetcher(default=make_segment(3))
    synth = DetourSynthesizer(fetcher, abc_catalog, workers=workers)

    res = synth.synthesize(START, END)

    assert res.source == "provider"
    assert res.via == ("A", "B")
    assert res.length_proxy == 5
    assert res.points[0] == START and res.points[-1] == END
    assert res.instructions == ("custom messy route generated",)
    assert sorted((f.lat, t.lat) for f, t in fetcher.calls) == [(0, 10), (0, 20), (10, 20)]


def test_sequential_mode_enumerates_in_order(abc_catalog):
    fetcher = StubFetcher(default=make_segment(3))
    DetourSynthesizer(fetcher, abc_catalog, workers=1).synthesize(START, END)
    assert [(f.lat, t.lat) for f, t in fetcher.calls] == [(0, 10), (0, 20), (10, 20)]


def test_longest_candidate_wins(abc_catalog):
    fetcher = StubFetcher(
        table={
            (0, 10): make_segment(3),
            (0, 20): make_segment(7, instructions=("Turn left",)),
            (10, 20): make_segment(4),
        }
    )
    res = DetourSynthesizer(fetcher, abc_catalog).synthesize(START, END)

    assert res.via == ("A", "C")
    assert res.length_proxy == 9
    assert res.instructions == ("Turn left",)


def test_all_failures_fall_back_to_jitter(abc_catalog):
    fetcher = StubFetcher(default=ProviderError("down"))
    res = DetourSynthesizer(fetcher, abc_catalog).synthesize(START, END)

    assert list(res.points) == jitter_path(START, END)
    assert res.instructions == ()
    assert res.source == "jitter"
    assert res == jitter_result(START, END)
    assert len(fetcher.calls) == 3


def test_some_failures_are_skipped(abc_catalog):
    fetcher = StubFetcher(
        table={
            (0, 10): NoRoute("no"),
            (0, 20): RuntimeError("bug in decoder"),
            (10, 20): make_segment(2),
        }
    )
    res = DetourSynthesizer(fetcher, abc_catalog).synthesize(START, END)
    assert res.via == ("B", "C")
    assert res.length_proxy == 4


def test_admission_bound_excludes_even_the_only_candidate(abc_catalog):
    fetcher = StubFetcher(table={(0, 10): make_segment(9998)})
    res = DetourSynthesizer(fetcher, abc_catalog).synthesize(START, END)
    # 9998 + start + end = 10000, which is not < 10000
    assert res.source == "jitter"


def test_admission_bound_keeps_the_longest_below_it(abc_catalog):
    fetcher = StubFetcher(
        table={
            (0, 10): make_segment(20),
            (0, 20): make_segment(50),
            (10, 20): make_segment(30),
        }
    )
    res = DetourSynthesizer(fetcher, abc_catalog, max_length_proxy=40).synthesize(START, END)
    assert res.via == ("B", "C")
    assert res.length_proxy == 32


def test_empty_catalog_gives_jitter():
    res = DetourSynthesizer(StubFetcher(), AnchorCatalog([])).synthesize(START, END)
    assert res == jitter_result(START, END)


def test_configuration_error_propagates(abc_catalog):
    fetcher = StubFetcher(default=ConfigurationError("ORS_API_KEY not set"))
    with pytest.raises(ConfigurationError):
        DetourSynthesizer(fetcher, abc_catalog, workers=2).synthesize(START, END)


def test_completion_order_does_not_change_the_winner():
    nodes = [AnchorNode(f"N{i}", Coordinate(i, i)) for i in range(5)]
    catalog = AnchorCatalog(nodes)

    class SlowEarlyFetcher:
        # earlier pairs answer last
        def fetch_segment(self, from_, to):
            time.sleep(0.002 * (10 - from_.lat - to.lat))
            return make_segment(4)

    res = DetourSynthesizer(SlowEarlyFetcher(), catalog, workers=5).synthesize(START, END)
    assert res.via == ("N0", "N1")


def test_cancel_abandons_pending_fetches(abc_catalog):
    gate = threading.Event()
    started = threading.Event()
    cancel = threading.Event()

    class BlockingFetcher:
        def fetch_segment(self, from_, to):
            started.set()
            gate.wait(5)
            return make_segment(3)

    synth = DetourSynthesizer(BlockingFetcher(), abc_catalog, workers=2, poll_interval_s=0.01)
    try:
        threading.Timer(0.05, cancel.set).start()
        res = synth.synthesize(START, END, cancel=cancel)
    finally:
        gate.set()

    assert started.is_set()
    assert res == jitter_result(START, END)


def test_select_best_ignores_ineligible_and_sorts_by_pair_index():
    short = CandidateRoute(points=(START, END), instructions=(), length_proxy=2, pair_index=0, via=("A", "B"))
    late = CandidateRoute(points=(START, END, END), instructions=(), length_proxy=3, pair_index=5, via=("C", "D"))
    early = CandidateRoute(points=(START, START, END), instructions=(), length_proxy=3, pair_index=1, via=("A", "C"))

    assert select_best([late, short, early], 10000) is early
    assert select_best([short], 10000) is None


def test_pluggable_score(abc_catalog):
    fetcher = StubFetcher(
        table={
            (0, 10): make_segment(3, base=(60.0, 20.0)),
            (0, 20): make_segment(10, base=(1.5, 1.5)),
        }
    )
    synth = DetourSynthesizer(fetcher, abc_catalog, score=geodesic_meters, max_length_proxy=50_000_000)
    res = synth.synthesize(START, END)
    # the far-away 3-point segment is longer in meters than the nearby 10-point one
    assert res.via == ("A", "B")


def test_invalid_settings_are_rejected(abc_catalog):
    with pytest.raises(ValueError):
        DetourSynthesizer(StubFetcher(), abc_catalog, workers=0)
    with pytest.raises(ValueError):
        DetourSynthesizer(StubFetcher(), abc_catalog, max_length_proxy=0)
