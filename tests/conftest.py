import sys
from pathlib import Path
from unittest.mock import MagicMock

import polyline
import pytest

# Ensure the repo root is on sys.path for direct pytest runs
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from messyroute.core.models import AnchorNode, Coordinate, RouteSegment  # noqa: E402
from messyroute.detour.anchors import AnchorCatalog  # noqa: E402
from messyroute.road.ors_common import ProviderError  # noqa: E402


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch):
    # tests decide explicitly whether an API key exists
    monkeypatch.delenv("ORS_API_KEY", raising=False)
    monkeypatch.delenv("MESSYROUTE_LOG_LEVEL", raising=False)


@pytest.fixture
def abc_catalog():
    return AnchorCatalog([
        AnchorNode("A", Coordinate(0, 0)),
        AnchorNode("B", Coordinate(10, 10)),
        AnchorNode("C", Coordinate(20, 20)),
    ])


class StubFetcher:
    """
    Records calls and answers from a per-(from, to) table.

    `table` maps (from.lat, to.lat) → RouteSegment or Exception; `default`
    is used for unlisted pairs.
    """

    def __init__(self, table=None, default=None):
        self.table = table or {}
        self.default = default
        self.calls = []

    def fetch_segment(self, from_, to):
        self.calls.append((from_, to))
        answer = self.table.get((from_.lat, to.lat), self.default)
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            raise ProviderError("no stub answer")
        return answer


def make_segment(n_points, *, base=(45.0, 5.0), instructions=()):
    pts = [Coordinate(base[0] + i * 0.001, base[1] + i * 0.001) for i in range(n_points)]
    return RouteSegment(points=pts, instructions=instructions)


def ors_response(points, instructions=("Head north", "Arrive"), distance=1234.5):
    """A minimal ORS /v2/directions JSON body."""
    return {
        "routes": [
            {
                "summary": {"distance": distance, "duration": 99.0},
                "geometry": polyline.encode(points, 5),
                "segments": [
                    {"steps": [{"instruction": s} for s in instructions]},
                ],
            }
        ]
    }


def http_response(status=200, body=None, headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body if body is not None else {}
    resp.text = ""
    resp.content = b"{}"
    resp.headers = headers or {}
    return resp


class FakeClock:
    """Stands in for time.time/time.sleep; sleeping advances the clock."""

    def __init__(self, start=100.0):
        self.now = float(start)
        self.sleeps = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock(monkeypatch):
    import time

    clock = FakeClock()
    monkeypatch.setattr(time, "time", clock.time)
    monkeypatch.setattr(time, "sleep", clock.sleep)
    return clock
