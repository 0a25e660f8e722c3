import threading
from unittest.mock import MagicMock

import pytest

from conftest import StubFetcher, make_segment
from messyroute.addressing.coords import Place
from messyroute.addressing.nominatim import GeocodeError
from messyroute.app.session import SelectionSession
from messyroute.core.models import Coordinate, SelectionResult
from messyroute.detour.synthesizer import DetourSynthesizer
from messyroute.road.ors_common import ConfigurationError


def _result(tag):
    return SelectionResult(points=[Coordinate(0, 0), Coordinate(tag, tag)], source="provider", via=(str(tag), "x"))


class GatedSynthesizer:
    """Calls for `slow_lat` block until `gate` is set; results are tagged by end.lat."""

    def __init__(self, slow_lat):
        self.slow_lat = slow_lat
        self.gate = threading.Event()
        self.cancels = {}

    def synthesize(self, start, end, *, cancel=None):
        self.cancels[end.lat] = cancel
        if end.lat == self.slow_lat:
            self.gate.wait(5)
        return _result(end.lat)


def test_commit_without_origin_is_deferred(abc_catalog):
    synth = DetourSynthesizer(StubFetcher(default=make_segment(3)), abc_catalog)
    with SelectionSession(synth) as session:
        assert session.commit_destination(Coordinate(2, 2), "Paris") is None
        assert session.pending
        assert session.result is None

        fut = session.set_origin(Coordinate(1, 1), "Home")

        assert fut is not None
        res = session.wait(timeout=5)
        assert res.points[0] == Coordinate(1, 1)
        assert res.points[-1] == Coordinate(2, 2)
        assert session.end_name == "Paris"
        assert session.target == Coordinate(2, 2)


def test_new_commit_replaces_the_result(abc_catalog):
    synth = DetourSynthesizer(StubFetcher(default=make_segment(3)), abc_catalog)
    with SelectionSession(synth) as session:
        session.set_origin((1, 1), "Home")
        session.commit_destination((2, 2), "A")
        first = session.wait(timeout=5)
        session.commit_destination((3, 3), "B")
        second = session.wait(timeout=5)

    assert first.points[-1] == Coordinate(2, 2)
    assert second.points[-1] == Coordinate(3, 3)
    assert session.result is second
    assert session.generation == 2


def test_stale_completion_is_discarded():
    synth = GatedSynthesizer(slow_lat=10.0)
    session = SelectionSession(synth)
    try:
        session.set_origin((1, 1), "Home")
        old = session.commit_destination((10, 10), "old")
        new = session.commit_destination((20, 20), "new")

        new.result(timeout=5)
        assert session.result.via == ("20.0", "x")

        synth.gate.set()
        old.result(timeout=5)

        assert session.result.via == ("20.0", "x")
        assert synth.cancels[10.0].is_set()
        assert not synth.cancels[20.0].is_set()
    finally:
        synth.gate.set()
        session.close()


def test_handle_select_parses_string_coordinates(abc_catalog):
    synth = DetourSynthesizer(StubFetcher(default=make_segment(3)), abc_catalog)
    with SelectionSession(synth) as session:
        session.set_origin((1, 1), "Home")
        session.handle_select("48.8566", "2.3522", "Paris")
        res = session.wait(timeout=5)

    assert res.points[-1] == Coordinate(48.8566, 2.3522)
    assert session.end == Coordinate(48.8566, 2.3522)

    with pytest.raises(ValueError):
        session.handle_select("north", "2.0", "nowhere")


def test_configuration_error_reaches_the_caller(abc_catalog):
    synth = DetourSynthesizer(StubFetcher(default=ConfigurationError("no key")), abc_catalog)
    with SelectionSession(synth) as session:
        session.set_origin((1, 1), "Home")
        session.commit_destination((2, 2), "Paris")
        with pytest.raises(ConfigurationError):
            session.wait(timeout=5)
        assert session.result is None


def test_origin_name_comes_from_reverse_geocoding():
    geocoder = MagicMock()
    geocoder.reverse.return_value = "10 Downing St, London"
    session = SelectionSession(MagicMock(), geocoder=geocoder)
    session.set_origin((51.5034, -0.1276))
    assert session.start_name == "10 Downing St, London"
    assert session.end == Coordinate(51.5034, -0.1276)

    geocoder.reverse.side_effect = GeocodeError("down")
    session.set_origin((51.5, -0.1))
    assert session.start_name == "Current Location"
    session.close()


def test_search_filters_short_queries_and_current_destination():
    geocoder = MagicMock()
    geocoder.search.return_value = [
        Place("Paris, France", Coordinate(48.85, 2.35)),
        Place("Paris, Texas", Coordinate(33.66, -95.55)),
    ]
    session = SelectionSession(MagicMock(), geocoder=geocoder)
    session.end_name = "Paris, France"

    assert session.search("Pa") == []
    geocoder.search.assert_not_called()

    hits = session.search("Paris")
    assert [h.display_name for h in hits] == ["Paris, Texas"]
    session.close()


def test_search_without_geocoder_is_empty():
    session = SelectionSession(MagicMock())
    assert session.search("Paris") == []
    session.close()


def test_string_destination_is_rejected_before_commit():
    synth = MagicMock()
    session = SelectionSession(synth)
    session.set_origin((1, 1), "Home")

    with pytest.raises(ValueError):
        session.commit_destination("12", "bogus")

    assert session.generation == 0
    assert session.target is None
    synth.synthesize.assert_not_called()
    session.close()
