import json

import pytest

from messyroute.core.models import AnchorNode, Coordinate
from messyroute.detour.anchors import DEFAULT_ANCHORS, AnchorCatalog, default_catalog


def test_duplicate_names_are_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        AnchorCatalog([
            AnchorNode("A", Coordinate(0, 0)),
            AnchorNode("A", Coordinate(1, 1)),
        ])


def test_pairs_are_lexicographic(abc_catalog):
    assert list(abc_catalog.pairs()) == [(0, 0, 1), (1, 0, 2), (2, 1, 2)]
    assert abc_catalog.pair_count() == 3


def test_small_catalogs_have_no_pairs():
    assert list(AnchorCatalog([]).pairs()) == []
    assert list(AnchorCatalog([AnchorNode("A", Coordinate(0, 0))]).pairs()) == []


def test_default_catalog_is_ordered_and_unique():
    cat = default_catalog()
    names = [a.name for a in cat.anchors()]
    assert names == [rec[0] for rec in DEFAULT_ANCHORS]
    assert len(set(names)) == len(names)
    assert cat.pair_count() == len(names) * (len(names) - 1) // 2


def test_from_json_skips_invalid_records(tmp_path):
    path = tmp_path / "anchors.json"
    path.write_text(json.dumps([
        {"name": "Lyon", "lat": 45.76, "lon": 4.84},
        {"name": "", "lat": 1, "lon": 1},
        {"name": "Nowhere", "lat": 123, "lon": 0},
        {"name": "Turin", "lat": "45.07", "lon": "7.69"},
        "garbage",
    ]), encoding="utf-8")

    cat = AnchorCatalog.from_json(path)

    assert [a.name for a in cat] == ["Lyon", "Turin"]
    assert cat[1].coords == Coordinate(45.07, 7.69)


def test_from_json_without_valid_records_fails(tmp_path):
    path = tmp_path / "anchors.json"
    path.write_text(json.dumps([{"name": "x"}]), encoding="utf-8")
    with pytest.raises(ValueError, match="No valid anchors"):
        AnchorCatalog.from_json(path)
